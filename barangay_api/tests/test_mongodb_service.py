# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for MongoDB service layer.
"""

from unittest.mock import MagicMock, Mock

import pytest
from pymongo.errors import DuplicateKeyError

from barangay_api.scripts.create_indexes import main as create_indexes_main
from barangay_api.services.mongodb import DuplicateDocumentError, MongoDBService


class TestMongoDBService:
    """Test MongoDB service query building with a mocked driver."""

    @pytest.fixture
    def collection(self):
        return MagicMock()

    @pytest.fixture
    def mongodb_service(self, collection):
        service = MongoDBService("mongodb://localhost:27017/barangay_test", "barangay_test",
                                 transactions_enabled=False)
        service.get_collection = Mock(return_value=collection)
        return service

    def test_find_excludes_soft_deleted(self, mongodb_service, collection):
        collection.find.return_value.sort.return_value = [{"_id": "a", "status": "pending"}]

        documents = mongodb_service.find("certificate_requests", {"status": "pending"},
                                         sort=[("requested_at", 1)])

        collection.find.assert_called_once_with({"deleted_at": None, "status": "pending"}, session=None)
        collection.find.return_value.sort.assert_called_once_with([("requested_at", 1)])
        assert documents == [{"id": "a", "status": "pending"}]

    def test_update_is_compare_and_set(self, mongodb_service, collection):
        collection.update_one.return_value = Mock(matched_count=1)

        assert mongodb_service.update("certificate_requests", "a", {"status": "approved"}, "captain-1",
                                      expected={"status": "pending"})

        query, update = collection.update_one.call_args.args
        assert query == {"deleted_at": None, "_id": "a", "status": "pending"}
        assert update["$set"]["status"] == "approved"
        assert update["$set"]["updated_by"] == "captain-1"
        assert "updated_at" in update["$set"]

    def test_update_reports_no_match(self, mongodb_service, collection):
        collection.update_one.return_value = Mock(matched_count=0)
        assert not mongodb_service.update("certificate_requests", "a", {"status": "approved"}, "u")

    def test_duplicate_key_carries_key_value(self, mongodb_service, collection):
        collection.insert_one.side_effect = DuplicateKeyError(
            "E11000", 11000, {"keyValue": {"certificate_number": "2026-BAR-0001"}}
        )

        with pytest.raises(DuplicateDocumentError) as exc_info:
            mongodb_service.create("issued_certificates", {"_id": "x"})

        assert exc_info.value.key == {"certificate_number": "2026-BAR-0001"}

    def test_next_sequence_is_atomic_upsert(self, mongodb_service, collection):
        collection.find_one_and_update.return_value = {"_id": "certificate:indigency:2026", "seq": 4}

        assert mongodb_service.next_sequence("certificate:indigency:2026") == 4

        query, update = collection.find_one_and_update.call_args.args
        assert query == {"_id": "certificate:indigency:2026"}
        assert update["$inc"] == {"seq": 1}
        assert collection.find_one_and_update.call_args.kwargs["upsert"] is True

    def test_upsert_sets_creation_fields_on_insert_only(self, mongodb_service, collection):
        mongodb_service.upsert("barangay_info", "barangay", {"captain_signature_path": "s.png"}, "admin-1")

        query, update = collection.update_one.call_args.args
        assert query == {"_id": "barangay"}
        assert update["$setOnInsert"]["created_by"] == "admin-1"
        assert update["$set"]["captain_signature_path"] == "s.png"
        assert collection.update_one.call_args.kwargs["upsert"] is True

    def test_without_transactions_callback_gets_no_session(self, mongodb_service):
        callback = Mock(return_value="done")
        assert mongodb_service.run_in_transaction(callback) == "done"
        callback.assert_called_once_with(None)

    def test_health_check_failure(self):
        service = MongoDBService("mongodb://localhost:1/none", "none", transactions_enabled=False)
        service._client = MagicMock()
        service._client.admin.command.side_effect = Exception("connection refused")

        health = service.health_check()

        assert health["status"] == "unhealthy"
        assert "connection refused" in health["error"]


class TestCreateIndexesScript:

    def test_creates_indexes(self, mongo):
        mongo.create_indexes = Mock()
        assert create_indexes_main(mongo) == 0
        mongo.create_indexes.assert_called_once()

    def test_unhealthy_database(self):
        service = Mock()
        service.health_check.return_value = {"status": "unhealthy", "error": "timeout"}

        assert create_indexes_main(service) == 1
        service.create_indexes.assert_not_called()

    def test_index_failure(self, mongo):
        mongo.create_indexes = Mock(side_effect=RuntimeError("not primary"))
        assert create_indexes_main(mongo) == 1
