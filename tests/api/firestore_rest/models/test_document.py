from firestore_rest.models.document import DocumentSnapshot, QuerySnapshot


def test_snapshot_from_api_takes_id_from_resource_name():
    snapshot = DocumentSnapshot.from_api(
        {
            "name": "projects/demo/databases/(default)/documents/payments/Xy12",
            "fields": {"status": {"stringValue": "pending"}},
            "updateTime": "2024-05-01T10:00:00Z",
        }
    )

    assert snapshot.id == "Xy12"
    assert snapshot.exists
    assert snapshot.to_dict() == {"status": "pending"}
    assert snapshot.update_time == "2024-05-01T10:00:00Z"


def test_missing_snapshot():
    snapshot = DocumentSnapshot.missing("alice@example.com")

    assert snapshot.id == "alice@example.com"
    assert not snapshot.exists
    assert snapshot.to_dict() is None
    assert snapshot.get("smsCredits", 0) == 0


def test_snapshot_without_fields_reads_as_missing():
    snapshot = DocumentSnapshot.from_api({"name": "projects/demo/databases/(default)/documents/users/empty"})

    assert not snapshot.exists


def test_snapshot_get_decodes_one_field():
    snapshot = DocumentSnapshot(id="a", fields={"smsCredits": {"integerValue": "12"}})

    assert snapshot.get("smsCredits") == 12
    assert snapshot.get("lastUsed") is None


def test_query_snapshot():
    empty = QuerySnapshot()
    full = QuerySnapshot([DocumentSnapshot(id="a", fields={}), DocumentSnapshot(id="b", fields={})])

    assert empty.empty and empty.size == 0
    assert not full.empty
    assert full.size == len(full) == 2
    assert [snapshot.id for snapshot in full] == ["a", "b"]
