import asyncio
import json

import pytest

from pixcap_cli.exceptions import DownloadError, PersistenceError
from pixcap_cli.models.refs import ItemRef, ResolutionResult
from pixcap_cli.storage.asset_store import AssetStore
from pixcap_cli.storage.catalog import ItemCatalog
from pixcap_cli.storage.mapping import MappingIndex

from .conftest import FakeDownloader

SIGNED_URL = "https://storage.example.com/abc123.glb?sig=1"


@pytest.fixture
def mapping_path(output_root):
    return output_root / "slug-uuid-mapping.json"


def make_store(output_root, mapping_path, downloader=None):
    return AssetStore(output_root, MappingIndex(mapping_path), downloader or FakeDownloader())


def read_json(path):
    return json.loads(path.read_text(encoding="utf-8"))


def test_store_writes_named_file_and_records_mapping(output_root, mapping_path, collection):
    store = make_store(output_root, mapping_path)
    item = ItemRef.from_slug("foo", collection)

    asset = asyncio.run(store.store(item, ResolutionResult("abc123", SIGNED_URL)))

    expected = output_root / "3d-icon-set-buildings-houses" / "foo__abc123.glb"
    assert asset.path == expected
    assert expected.read_bytes() == b"glTF-binary"
    assert asset.size == len(b"glTF-binary")
    assert read_json(mapping_path) == {"foo": "abc123"}
    assert store.downloader.calls == [(SIGNED_URL, expected)]


def test_failed_download_leaves_no_file_and_no_mapping(output_root, mapping_path, collection):
    store = make_store(output_root, mapping_path, FakeDownloader(fail=True))
    item = ItemRef.from_slug("foo", collection)

    with pytest.raises(DownloadError):
        asyncio.run(store.store(item, ResolutionResult("abc123", SIGNED_URL)))

    assert not store.already_has(item)
    assert not mapping_path.exists()


@pytest.mark.parametrize(
    "slug, identifier",
    [("../../../escaped", "abc123"), ("foo", "../../escaped"), ("a\\b", "abc123")],
)
def test_store_refuses_names_outside_pack_dir(
    output_root, mapping_path, collection, tmp_path, slug, identifier
):
    store = make_store(output_root, mapping_path)
    item = ItemRef.from_slug(slug, collection)

    with pytest.raises(PersistenceError):
        asyncio.run(store.store(item, ResolutionResult(identifier, SIGNED_URL)))

    assert store.downloader.calls == []
    assert not mapping_path.exists()
    assert not any(p.suffix == ".glb" for p in tmp_path.rglob("*"))


def test_already_has_matches_slug_prefix_only(output_root, mapping_path, collection):
    store = make_store(output_root, mapping_path)
    directory = store.collection_dir(collection)
    directory.mkdir(parents=True)
    (directory / "foobar__zzz.glb").write_bytes(b"x")
    (directory / "foo__old.obj").write_bytes(b"x")

    foo = ItemRef.from_slug("foo", collection)
    assert not store.already_has(foo)

    (directory / "foo__any-identifier.glb").write_bytes(b"x")
    assert store.already_has(foo)
    assert store.already_has(ItemRef.from_slug("foobar", collection))


def test_already_has_without_collection_dir(output_root, mapping_path, collection):
    store = make_store(output_root, mapping_path)
    assert not store.already_has(ItemRef.from_slug("foo", collection))


def test_corrupt_mapping_is_reset(mapping_path):
    mapping_path.write_text("{not json", encoding="utf-8")

    mapping = MappingIndex(mapping_path)
    assert len(mapping) == 0

    asyncio.run(mapping.record("foo", "abc123"))
    assert read_json(mapping_path) == {"foo": "abc123"}


def test_non_object_mapping_is_reset(mapping_path):
    mapping_path.write_text('["foo", "abc123"]', encoding="utf-8")
    assert MappingIndex(mapping_path).as_dict() == {}


def test_record_keeps_existing_entries(mapping_path):
    mapping_path.write_text(json.dumps({"bar": "111"}), encoding="utf-8")
    mapping = MappingIndex(mapping_path)

    asyncio.run(mapping.record("foo", "222"))
    asyncio.run(mapping.record("bar", "333"))

    assert read_json(mapping_path) == {"bar": "333", "foo": "222"}
    assert mapping.get("foo") == "222"
    assert "bar" in mapping
    assert not mapping_path.with_name(mapping_path.name + ".tmp").exists()


def test_catalog_records_packs_and_items(output_root, collection):
    catalog = ItemCatalog(output_root)
    catalog.save_packs([collection])
    catalog.add_item(ItemRef.from_slug("foo", collection))
    catalog.save_items()

    assert read_json(output_root / "all-packs.json") == [collection.path]
    assert read_json(output_root / "all-items.json") == {
        "foo": {
            "itemUrl": "/item/foo",
            "packName": "Buildings",
            "packUrl": "/pack/3d-icon-set-buildings-houses",
        }
    }
