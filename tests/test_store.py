"""Tests for the profile store."""

import pytest

from git_id.config import Profile
from git_id.exceptions import DuplicateNameError, InvalidProfileError, NotFoundError
from git_id.store import ProfileStore


class TestAddFind:
    def test_add_then_find(self, tmp_profiles, work_profile):
        store = ProfileStore(tmp_profiles)
        store.add(work_profile)
        assert store.find("work") == work_profile

    def test_find_is_case_insensitive(self, store, work_profile):
        assert store.find("Work") == work_profile

    def test_find_missing(self, store):
        assert store.find("nobody") is None

    def test_duplicate_name_differing_in_case(self, store):
        with pytest.raises(DuplicateNameError):
            store.add(Profile(name="WORK", user_name="X", email="x@x.com"))
        assert len(store.list()) == 2

    def test_invalid_name_rejected(self, tmp_profiles):
        store = ProfileStore(tmp_profiles)
        with pytest.raises(InvalidProfileError):
            store.add(Profile(name="my work", user_name="X", email="x@x.com"))

    def test_empty_email_rejected(self, tmp_profiles):
        store = ProfileStore(tmp_profiles)
        with pytest.raises(InvalidProfileError):
            store.add(Profile(name="w", user_name="X", email=" "))

    def test_insertion_order_preserved(self, store):
        assert store.names() == ["work", "personal"]

    def test_persisted_across_instances(self, store, isolated):
        reloaded = ProfileStore(isolated)
        assert reloaded.list() == store.list()


class TestListCopy:
    def test_mutating_list_does_not_touch_store(self, store):
        profiles = store.list()
        profiles.clear()
        assert len(store.list()) == 2

    def test_mutating_record_does_not_touch_store(self, store):
        profile = store.find("work")
        profile.email = "changed@x.com"
        assert store.find("work").email == "w@x.com"


class TestUpdate:
    def test_update_merges_fields(self, store):
        updated = store.update("work", email="new@x.com")
        assert updated.email == "new@x.com"
        assert updated.user_name == "Work Person"
        assert ProfileStore(store.path).find("work").email == "new@x.com"

    def test_update_missing(self, store):
        with pytest.raises(NotFoundError):
            store.update("nobody", email="a@b.c")

    def test_update_unknown_field(self, store):
        with pytest.raises(InvalidProfileError):
            store.update("work", colour="blue")

    def test_rename_onto_existing(self, store):
        with pytest.raises(DuplicateNameError):
            store.update("work", name="Personal")


class TestDelete:
    def test_delete_then_find(self, store):
        store.delete("WORK")
        assert store.find("work") is None
        assert store.names() == ["personal"]

    def test_delete_missing(self, store):
        with pytest.raises(NotFoundError):
            store.delete("nobody")

    def test_delete_all(self, store):
        store.delete_all()
        assert store.list() == []
        assert ProfileStore(store.path).list() == []

    def test_delete_all_on_empty_store(self, tmp_profiles):
        store = ProfileStore(tmp_profiles)
        store.delete_all()
        assert store.list() == []


class TestConcurrentWriters:
    def test_mutation_sees_other_writers(self, tmp_profiles, work_profile, personal_profile):
        first = ProfileStore(tmp_profiles)
        second = ProfileStore(tmp_profiles)
        first.add(work_profile)
        second.add(personal_profile)
        assert ProfileStore(tmp_profiles).names() == ["work", "personal"]

    def test_corrupt_file_is_empty_store(self, tmp_profiles):
        tmp_profiles.parent.mkdir(parents=True)
        tmp_profiles.write_text("garbage")
        assert ProfileStore(tmp_profiles).list() == []
