from mvault_backend.features.library.natural_sort import compare, natural_key, natural_sorted


def test_numeric_runs_compare_by_value() -> None:
    assert natural_sorted(["page10.jpg", "page2.jpg", "page1.jpg"]) == ["page1.jpg", "page2.jpg", "page10.jpg"]


def test_text_runs_are_case_insensitive() -> None:
    assert natural_sorted(["b.jpg", "A.jpg", "c.jpg"]) == ["A.jpg", "b.jpg", "c.jpg"]


def test_nested_paths_sort_by_directory_first() -> None:
    files = ["ch10/001.png", "ch2/010.png", "ch2/002.png", "ch1/001.png"]
    assert natural_sorted(files) == ["ch1/001.png", "ch2/002.png", "ch2/010.png", "ch10/001.png"]


def test_order_is_total_and_stable() -> None:
    files = ["a1.jpg", "a01.jpg", "A1.jpg"]
    first = natural_sorted(files)
    assert natural_sorted(reversed(files)) == first
    assert len(set(natural_key(f) for f in files)) == 3


def test_digits_sort_before_letters() -> None:
    assert natural_sorted(["cover.jpg", "01.jpg"]) == ["01.jpg", "cover.jpg"]


def test_compare_matches_sort_order() -> None:
    assert compare("page2", "page10") == -1
    assert compare("page10", "page2") == 1
    assert compare("page2", "page2") == 0
