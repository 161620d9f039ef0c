# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

from datetime import timedelta

from barangay_api.models.base import utc_now
from barangay_api.models.enums import UserRole
from barangay_api.services.signatures import SignatureLookup
from barangay_api.tests.fakes import seed_captain


class TestSignatureLookup:

    def test_authority_signature(self, mongo):
        seed_captain(mongo, signature_path="signatures/captain.png")
        lookup = SignatureLookup(mongo)
        assert lookup.has_signature("captain-1") == (True, "signatures/captain.png")

    def test_barangay_fallback(self, mongo):
        seed_captain(mongo)
        lookup = SignatureLookup(mongo)
        assert lookup.has_signature("captain-1") == (False, None)

        lookup.record_barangay_signature("signatures/barangay.png", "admin-1")
        assert lookup.has_signature("captain-1") == (True, "signatures/barangay.png")
        assert lookup.has_signature(None) == (True, "signatures/barangay.png")

    def test_record_user_signature_creates_user(self, mongo):
        lookup = SignatureLookup(mongo)
        lookup.record_user_signature("captain-2", "Kapitan Luna", UserRole.CAPTAIN, "signatures/luna.png")

        assert lookup.current_authority_id() == "captain-2"
        assert lookup.has_signature("captain-2") == (True, "signatures/luna.png")

    def test_earliest_captain_is_the_authority(self, mongo):
        seed_captain(mongo, user_id="captain-new")
        mongo.update("users", "captain-new", {"created_at": utc_now()}, "test")
        seed_captain(mongo, user_id="captain-old")
        mongo.update("users", "captain-old", {"created_at": utc_now() - timedelta(days=400)}, "test")

        assert SignatureLookup(mongo).current_authority_id() == "captain-old"

    def test_barangay_info_keeps_captain_name(self, mongo):
        lookup = SignatureLookup(mongo)
        lookup.record_barangay_signature("signatures/a.png", "admin-1", captain_name="Hon. Maria Clara")
        lookup.record_barangay_signature("signatures/b.png", "admin-1")

        info = lookup.barangay_info()
        assert info["captain_name"] == "Hon. Maria Clara"
        assert info["captain_signature_path"] == "signatures/b.png"
