import pytest

from coreapi.services.mirror import MirrorError, MirrorStore, init_mirror


class TestMirrorStore:
    def test_upsert_inserts_then_updates(self, mirror, fake_mongo):
        mirror.upsert("example", {"id": 1, "name": "A"})
        mirror.upsert("example", {"id": 1, "name": "B"})
        assert list(fake_mongo["example"].find({}, {"_id": 0})) == [{"id": 1, "name": "B"}]

    def test_custom_unique_keys(self, mirror, fake_mongo):
        mirror.upsert("example", {"id": 1, "code": "x", "name": "A"}, unique_keys=("code",))
        mirror.upsert("example", {"id": 2, "code": "x", "name": "B"}, unique_keys=("code",))
        assert fake_mongo["example"].count_documents({}) == 1

    def test_search_sort_skip_limit(self, mirror):
        for i in range(1, 6):
            mirror.upsert("example", {"id": i, "status": 1})
        docs = mirror.search("example", {"status": 1}, sort=[("id", -1)], skip=1, limit=2)
        assert [d["id"] for d in docs] == [4, 3]
        assert all("_id" not in d for d in docs)

    def test_count(self, mirror):
        mirror.upsert("example", {"id": 1, "status": 1})
        mirror.upsert("example", {"id": 2, "status": 4})
        assert mirror.count("example", {"status": {"$ne": 4}}) == 1

    def test_write_failure_wrapped(self, failing_mirror):
        with pytest.raises(MirrorError):
            failing_mirror.upsert("example", {"id": 1})


class TestInitMirror:
    def test_disabled_without_uri(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "MONGODB_URI", "")
        assert init_mirror(app) is None
        assert app.extensions["mirror"] is None

    def test_enabled_with_uri(self, app, monkeypatch):
        pytest.importorskip("pymongo")
        from pymongo.collection import Collection

        monkeypatch.setitem(app.config, "MONGODB_URI", "mongodb://localhost:27017")
        monkeypatch.setitem(app.extensions, "mirror", None)
        store = init_mirror(app)
        assert isinstance(store, MirrorStore)
        assert app.extensions["mirror"] is store
        collection = store.collection("example")
        assert isinstance(collection, Collection)
        collection.database.client.close()
