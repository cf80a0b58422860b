"""
Storage and Service Tests
=========================
"""

import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from vc_system.config import VCSettings
from vc_system.content_store import CID_PREFIX, LocalContentStore, content_id
from vc_system.credential_issuer import CredentialRecord
from vc_system.credential_verifier import VerificationStatus
from vc_system.did_service import (
    DetachedVerificationRequest,
    DIDService,
    IssuanceRequest,
    RevocationRequest,
    TokenVerificationRequest,
)
from vc_system.errors import EncodingError, IssuerNotConfigured, MissingIdentifier, StoreIOError
from vc_system.revocation import RevocationEntry, RevocationRegistry
from vc_system.storage import InMemoryStore, JSONFileStore

TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


def _record(record_id: str) -> CredentialRecord:
    return CredentialRecord(
        id=record_id,
        issuer=f"did:ethr:{TEST_ADDRESS}",
        subject="did:example:abc123",
        jwt="h.p.s",
        raw={"sub": "did:example:abc123"},
        issued_at=1700000000000,
    )


class TestInMemoryStore:
    def test_append_list_contains(self):
        store = InMemoryStore()
        store.append(_record("vc-1"))
        store.append(_record("vc-2"))

        assert [r.id for r in store.list()] == ["vc-2", "vc-1"]
        assert store.contains("vc-1") is True
        assert store.contains("vc-3") is False
        assert len(store) == 2


class TestJSONFileStore:
    """Test the file-backed store"""

    def test_newest_first_and_persisted(self, tmp_path):
        path = tmp_path / "data" / "vcs.json"
        store = JSONFileStore(path, CredentialRecord.from_dict)
        store.append(_record("vc-1"))
        store.append(_record("vc-2"))

        reopened = JSONFileStore(path, CredentialRecord.from_dict)
        assert [r.id for r in reopened.list()] == ["vc-2", "vc-1"]
        assert reopened.list()[0] == _record("vc-2")
        assert reopened.contains("vc-1") is True

        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert on_disk[0]["issuedAt"] == 1700000000000

    def test_missing_file_is_empty(self, tmp_path):
        store = JSONFileStore(tmp_path / "absent.json", CredentialRecord.from_dict)

        assert store.list() == []
        assert store.contains("vc-1") is False

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "vcs.json"
        path.write_text("{not json", encoding="utf-8")
        store = JSONFileStore(path, CredentialRecord.from_dict)

        with pytest.raises(StoreIOError):
            store.list()
        with pytest.raises(StoreIOError):
            store.append(_record("vc-1"))

        # nothing was overwritten
        assert path.read_text(encoding="utf-8") == "{not json"

    def test_not_an_array(self, tmp_path):
        path = tmp_path / "vcs.json"
        path.write_text('{"id": "vc-1"}', encoding="utf-8")

        with pytest.raises(StoreIOError):
            JSONFileStore(path, CredentialRecord.from_dict).contains("vc-1")

    def test_concurrent_revocations(self, tmp_path):
        store = JSONFileStore(tmp_path / "revocations.json", RevocationEntry.from_dict)
        registry = RevocationRegistry(store)
        ids = [f"vc-{i}" for i in range(25)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(registry.revoke, ids + ids))

        assert sorted(e.id for e in registry.list_entries()) == sorted(ids)
        assert all(registry.is_revoked(i) for i in ids)


class TestContentStore:
    def setup_method(self):
        self.data = b"%PDF-1.4 diploma"

    def test_store(self, tmp_path):
        store = LocalContentStore(tmp_path / "uploads")

        ref = store.store(self.data, "diploma.pdf")

        assert ref.cid.startswith(CID_PREFIX)
        assert len(ref.cid) == len(CID_PREFIX) + 40
        assert ref.filename == "diploma.pdf"
        assert Path(ref.stored_path).read_bytes() == self.data
        assert ref.to_dict()["cid"] == ref.cid

    def test_same_content_same_cid(self, tmp_path):
        store = LocalContentStore(tmp_path)

        assert store.store(self.data, "a.pdf").cid == store.store(self.data, "b.pdf").cid == content_id(self.data)

    def test_filename_directories_stripped(self, tmp_path):
        ref = LocalContentStore(tmp_path / "uploads").store(self.data, "../../etc/passwd")

        assert ref.filename == "passwd"
        assert ref.stored_path.startswith(str(tmp_path / "uploads"))

    def test_empty_upload(self, tmp_path):
        with pytest.raises(EncodingError):
            LocalContentStore(tmp_path).store(b"", "empty.txt")


class TestDIDService:
    """Test DIDService integration"""

    def _service(self, tmp_path, private_key=TEST_PRIVATE_KEY):
        config = VCSettings(DATA_DIR=tmp_path, ISSUER_PRIVATE_KEY=private_key)
        return DIDService(config=config)

    def test_service_initialization(self, tmp_path):
        service = self._service(tmp_path)

        assert service.issuer_did == f"did:ethr:{TEST_ADDRESS}"
        assert service.did_manager.resolve(service.issuer_did) is not None
        print(f"✅ Service initialized with issuer DID: {service.issuer_did}")

    @pytest.mark.asyncio
    async def test_full_credential_flow(self, tmp_path):
        service = self._service(tmp_path)

        # 1. Issue
        response = service.issue(IssuanceRequest(
            subject="did:example:abc123",
            type="IdentityCredential",
            claims={"name": "Alice"},
        ))
        assert set(response) == {"jwt", "vc"}
        credential_id = response["vc"]["vc"]["id"]

        # 2. Verify
        result = await service.verify(TokenVerificationRequest(response["jwt"]))
        assert result.valid is True
        assert result.revoked is False

        # 3. Revoke
        assert service.revoke(RevocationRequest(credential_id)) == {"revoked": credential_id}

        # 4. Verify again
        result = await service.verify(TokenVerificationRequest(response["jwt"]))
        assert result.valid is True
        assert result.revoked is True

        assert (tmp_path / "vcs.json").exists()
        assert (tmp_path / "revocations.json").exists()

    @pytest.mark.asyncio
    async def test_detached_request(self, tmp_path):
        service = self._service(tmp_path)
        claim_set = {"id": "vc-detached", "issuer": service.issuer_did, "credentialSubject": {"id": "did:example:abc123"}}
        signature = service.credential_issuer.sign_detached(claim_set)

        result = await service.verify(DetachedVerificationRequest(claim_set, signature))

        assert result.valid is True
        assert result.status == VerificationStatus.VALID

    @pytest.mark.asyncio
    async def test_unknown_request_type(self, tmp_path):
        with pytest.raises(TypeError):
            await self._service(tmp_path).verify({"jwt": "a.b.c"})

    def test_listing_newest_first(self, tmp_path):
        service = self._service(tmp_path)
        first = service.issue(IssuanceRequest(subject="did:example:one"))
        second = service.issue(IssuanceRequest(subject="did:example:two"))

        records = service.list_credentials()
        assert [r.subject for r in records] == ["did:example:two", "did:example:one"]
        assert records[0].jwt == second["jwt"]
        assert records[1].jwt == first["jwt"]

    def test_issue_without_key(self, tmp_path):
        service = self._service(tmp_path, private_key=None)

        with pytest.raises(IssuerNotConfigured):
            service.issue(IssuanceRequest(subject="did:example:abc123"))
        assert service.list_credentials() == []

    def test_revoke_without_id(self, tmp_path):
        with pytest.raises(MissingIdentifier):
            self._service(tmp_path).revoke(RevocationRequest())

    def test_upload(self, tmp_path):
        ref = self._service(tmp_path).upload(b"hello", "hello.txt")

        assert ref.stored_path.startswith(str(tmp_path / "uploads"))

    def test_statistics(self, tmp_path):
        service = self._service(tmp_path)
        issued = service.issue(IssuanceRequest())
        service.revoke(RevocationRequest(issued["vc"]["jti"]))

        stats = service.get_statistics()

        assert stats["issuer"]["address"] == TEST_ADDRESS
        assert stats["credentials"] == {"total_issued": 1, "total_revoked": 1}
