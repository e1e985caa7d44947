from rest_metadata.parser.paths import join_paths, normalize_path


class TestNormalizePath:
    def test_strips_leading_and_trailing_slashes(self):
        assert normalize_path("/people/") == "people"

    def test_collapses_repeated_separators(self):
        assert normalize_path("//people///list") == "people/list"

    def test_rewrites_colon_segments(self):
        assert normalize_path("people/:id/pets/:petId") == "people/{id}/pets/{petId}"

    def test_empty_and_none(self):
        assert normalize_path("") == ""
        assert normalize_path(None) == ""
        assert normalize_path("///") == ""

    def test_idempotent(self):
        for fragment in ("/a//:b/", "x", ":id", "{id}/c", "", "a/{b}/:c//"):
            once = normalize_path(fragment)
            assert normalize_path(once) == once


class TestJoinPaths:
    def test_joins_controller_and_method(self):
        assert join_paths("promise", "/{id}") == "/promise/{id}"

    def test_empty_fragments(self):
        assert join_paths("", "") == "/"
        assert join_paths("", "/test") == "/test"
        assert join_paths("mypath", "") == "/mypath"

    def test_never_doubles_separators(self):
        assert join_paths("/a/", "/b/") == "/a/b"
