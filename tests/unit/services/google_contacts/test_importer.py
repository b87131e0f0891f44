"""
Unit tests for Google Contacts person transformation and import options.
"""

from src.services.google_contacts.importer import (
    ImportOptions,
    ImportResult,
    apply_tag_options,
    transform_person,
)


def make_person(**overrides) -> dict:
    person = {
        "resourceName": "people/c123",
        "names": [{"givenName": "Ada", "familyName": "Lovelace"}],
        "emailAddresses": [
            {"value": "ada@old.example.com"},
            {"value": "Ada@Example.com", "metadata": {"primary": True}},
        ],
        "phoneNumbers": [{"value": "+14155552671"}],
        "organizations": [{"name": "Analytical Engines", "title": "Engineer"}],
        "memberships": [
            {"contactGroupMembership": {"contactGroupResourceName": "contactGroups/friends"}},
            {"contactGroupMembership": {"contactGroupResourceName": "contactGroups/myContacts"}},
        ],
    }
    person.update(overrides)
    return person


class TestTransformPerson:
    """Test People API to contact field mapping."""

    def test_full_person(self):
        contact = transform_person(make_person())

        assert contact["external_id"] == "people/c123"
        assert contact["first_name"] == "Ada"
        assert contact["last_name"] == "Lovelace"
        assert contact["email"] == "ada@example.com"
        assert contact["phone"] == "+14155552671"
        assert contact["company"] == "Analytical Engines"
        assert contact["position"] == "Engineer"
        assert contact["tags"] == ["friends", "myContacts"]
        assert contact["metadata"]["alternate_emails"] == ["ada@old.example.com"]
        assert contact["metadata"]["google_resource_name"] == "people/c123"

    def test_first_email_when_no_primary(self):
        person = make_person(emailAddresses=[{"value": "one@example.com"}, {"value": "two@example.com"}])

        contact = transform_person(person)

        assert contact["email"] == "one@example.com"
        assert contact["metadata"]["alternate_emails"] == ["two@example.com"]

    def test_sparse_person(self):
        """Test a person with only a resource name maps to empty fields."""
        contact = transform_person({"resourceName": "people/c9"})

        assert contact["first_name"] == ""
        assert contact["email"] is None
        assert contact["phone"] is None
        assert contact["company"] is None
        assert contact["tags"] == []


class TestApplyTagOptions:
    """Test tag mapping, exclusion and preservation."""

    def test_no_options(self):
        assert apply_tag_options(["friends", "work"], ImportOptions()) == ["friends", "work"]

    def test_mapping(self):
        options = ImportOptions(tag_mapping={"friends": "personal"}, preserve_original_tags=False)

        assert apply_tag_options(["friends", "work"], options) == ["personal", "work"]

    def test_exclude_after_mapping(self):
        options = ImportOptions(tag_mapping={"friends": "personal"}, exclude_labels=["personal"])

        assert apply_tag_options(["friends", "work"], options) == ["work"]

    def test_deduplicated(self):
        options = ImportOptions(tag_mapping={"a": "x", "b": "x"})

        assert apply_tag_options(["a", "b"], options) == ["x"]


class TestImportOptions:
    def test_from_dict_ignores_unknown_and_none(self):
        options = ImportOptions.from_dict(
            {"skip_duplicates": False, "unknown": 1, "selected_contact_ids": None, "exclude_labels": ["x"]}
        )

        assert options.skip_duplicates is False
        assert options.selected_contact_ids is None
        assert options.exclude_labels == ["x"]

    def test_round_trip_dict(self):
        options = ImportOptions(selected_contact_ids=["people/c1"], update_existing=True)

        assert ImportOptions.from_dict(options.to_dict()) == options

    def test_result_summary(self):
        result = ImportResult(imported=2, skipped=1, errors=[{"error": "x"}])

        assert result.to_dict(duration_ms=15) == {
            "imported": 2,
            "updated": 0,
            "skipped": 1,
            "failed": 0,
            "errors": [{"error": "x"}],
            "duration_ms": 15,
        }
