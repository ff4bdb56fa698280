"""Tests for cache key generation."""

import pytest

from dmcache.cache.keys import CacheKeys, require_callable, require_entry_id, require_model
from dmcache.errors import InvalidArgument


class TestEntryKeys:
    """Test single entry keys."""

    @pytest.fixture
    def keys(self) -> CacheKeys:
        return CacheKeys()

    def test_plain_entry_key(self, keys: CacheKeys) -> None:
        """Entry key joins model and entry ID."""
        assert keys.entry("blog", "p1") == "blog|p1"

    def test_fields_and_levels(self, keys: CacheKeys) -> None:
        """Fields are JSON encoded and levels appended."""
        assert keys.entry("blog", "p1", ["title"], 2) == 'blog|p1|["title"]|2'

    def test_levels_only(self, keys: CacheKeys) -> None:
        """Levels without fields."""
        assert keys.entry("testModel3", "entry2", None, 2) == "testModel3|entry2|2"

    def test_level_one_equals_omitted(self, keys: CacheKeys) -> None:
        """levels=1 is the default and is not part of the key."""
        assert keys.entry("blog", "p1", levels=1) == keys.entry("blog", "p1")

    def test_empty_fields_equal_omitted(self, keys: CacheKeys) -> None:
        """An empty field selection is no selection."""
        assert keys.entry("blog", "p1", []) == "blog|p1"

    def test_deterministic(self, keys: CacheKeys) -> None:
        """Identical requests produce identical keys."""
        assert keys.entry("blog", "p1", ["a", "b"], 3) == keys.entry("blog", "p1", ["a", "b"], 3)

    def test_each_segment_changes_key(self, keys: CacheKeys) -> None:
        """Varying any one argument changes the key."""
        base = keys.entry("blog", "p1", ["title"], 2)
        variants = {
            keys.entry("news", "p1", ["title"], 2),
            keys.entry("blog", "p2", ["title"], 2),
            keys.entry("blog", "p1", ["body"], 2),
            keys.entry("blog", "p1", ["title"], 3),
        }
        assert base not in variants
        assert len(variants) == 4

    def test_field_order_is_significant(self, keys: CacheKeys) -> None:
        """Field order is kept as given."""
        assert keys.entry("blog", "p1", ["a", "b"]) != keys.entry("blog", "p1", ["b", "a"])

    def test_entry_object_with_id(self, keys: CacheKeys) -> None:
        """Objects carrying an id are unwrapped."""
        assert keys.entry("blog", {"id": "p1"}) == "blog|p1"

    def test_separator_in_fields_is_escaped(self, keys: CacheKeys) -> None:
        """Field values never introduce a separator."""
        key = keys.entry("blog", "p1", ["a|b"])
        assert key.count("|") == 2

    def test_namespace_prefix(self) -> None:
        """Namespace is the first segment."""
        assert CacheKeys("site").entry("blog", "p1") == "site|blog|p1"


class TestListKeys:
    """Test entry list keys."""

    def test_without_options(self) -> None:
        """No options leave an empty filter segment."""
        assert CacheKeys().entry_list("testModel1") == "testModel1|"

    def test_with_options(self) -> None:
        """Options are JSON encoded."""
        assert CacheKeys().entry_list("testModel2", {"size": 1}) == 'testModel2|{"size":1}'

    def test_option_order_is_canonical(self) -> None:
        """Filter keys are sorted so equal filters share a key."""
        keys = CacheKeys()
        first = keys.entry_list("blog", {"a": 1, "b": 2})
        assert first == keys.entry_list("blog", {"b": 2, "a": 1})

    def test_list_and_entry_do_not_collide(self) -> None:
        """A list read never shares a key with an entry read."""
        keys = CacheKeys()
        assert keys.entry_list("blog", {"size": 1}) != keys.entry("blog", "p1")


class TestValidation:
    """Test argument validation."""

    @pytest.mark.parametrize("model", [None, "", 42, "a|b"])
    def test_invalid_model(self, model: object) -> None:
        """Missing or malformed models are rejected."""
        with pytest.raises(InvalidArgument, match="modelTitle"):
            CacheKeys().entry(model, "p1")

    @pytest.mark.parametrize("options", [{1: "x"}, {"ids": {"a"}}, {"when": object()}])
    def test_unserializable_options(self, options: dict[object, object]) -> None:
        """Options that cannot be encoded are rejected with the caller named."""
        with pytest.raises(InvalidArgument, match="options .* given to dmCache.getEntries"):
            CacheKeys().entry_list("blog", options, caller="dmCache.getEntries")

    def test_missing_model_message(self) -> None:
        """Message names the value and the caller."""
        with pytest.raises(InvalidArgument) as exc:
            require_model(None, "dmCache.getEntry")
        assert str(exc.value) == "modelTitle 'None' given to dmCache.getEntry is invalid!"

    @pytest.mark.parametrize("entry_id", [None, "", 7, {"id": ""}, {"name": "x"}])
    def test_invalid_entry_id(self, entry_id: object) -> None:
        """Missing or malformed entry IDs are rejected."""
        with pytest.raises(InvalidArgument, match="entryID"):
            require_entry_id(entry_id, "dmCache.getEntry")

    def test_entry_attribute_id(self) -> None:
        """Objects with an ``id`` attribute are unwrapped."""

        class Entry:
            id = "p9"

        assert require_entry_id(Entry(), "test") == "p9"

    def test_invalid_fields(self) -> None:
        """Fields must be a sequence of names."""
        with pytest.raises(InvalidArgument, match="fields"):
            CacheKeys().entry("blog", "p1", "title")  # type: ignore[arg-type]

    @pytest.mark.parametrize("levels", [0, -1, "2", True])
    def test_invalid_levels(self, levels: object) -> None:
        """Levels must be a positive integer."""
        with pytest.raises(InvalidArgument, match="levels"):
            CacheKeys().entry("blog", "p1", levels=levels)  # type: ignore[arg-type]

    def test_transform_must_be_callable(self) -> None:
        """Non-callable transforms are rejected."""
        with pytest.raises(InvalidArgument) as exc:
            require_callable(True, "dmCache.getEntry")
        assert str(exc.value) == "transformFunction given to dmCache.getEntry is invalid!"
        require_callable(None, "dmCache.getEntry")
        require_callable(len, "dmCache.getEntry")
