"""Document ingestion and management."""
import base64
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from api.features.documents import service as documents_module
from api.features.documents.dtos import DocumentUploadRequest
from api.features.documents.entities.document import Document
from api.features.documents.exceptions import DocumentNotFoundError, EmptyDocumentError
from api.features.documents.service import DocumentService, chunk_title
from api.shared.exceptions import ExternalServiceError, ValidationError


class FakeEmbeddings:
    def __init__(self, configured=True, fail_on=()):
        self.configured = configured
        self.fail_on = fail_on
        self.calls = 0

    async def embed_query(self, text):
        index = self.calls
        self.calls += 1
        if index in self.fail_on:
            raise OpenAIError("rate limited")
        return [0.1] * 1536


class FakeDocuments:
    created = []
    vectors = {}
    rows = {}
    listed = None
    deleted = []
    references = 1

    def __init__(self, session):
        pass

    async def create(self, document):
        document.id = f"doc-{len(FakeDocuments.created)}"
        FakeDocuments.created.append(document)
        return document

    async def set_embedding(self, document_id, embedding):
        FakeDocuments.vectors[document_id] = embedding

    async def get_by_id(self, document_id):
        return FakeDocuments.rows.get(document_id)

    async def list_filtered(self, **filters):
        FakeDocuments.listed = filters
        return list(FakeDocuments.rows.values()), len(FakeDocuments.rows)

    async def update_by_id(self, document_id, **values):
        document = FakeDocuments.rows.get(document_id)
        for name, value in values.items():
            setattr(document, name, value)
        return document

    async def count_by_storage_path(self, storage_path):
        return FakeDocuments.references

    async def delete(self, document_id):
        FakeDocuments.deleted.append(document_id)
        return True


@pytest.fixture
def documents(monkeypatch):
    FakeDocuments.created = []
    FakeDocuments.vectors = {}
    FakeDocuments.rows = {}
    FakeDocuments.listed = None
    FakeDocuments.deleted = []
    FakeDocuments.references = 1
    monkeypatch.setattr(documents_module, "DocumentRepository", FakeDocuments)
    monkeypatch.setattr(documents_module, "record_event", AsyncMock(return_value="event"))
    return FakeDocuments


@pytest.fixture
def storage():
    storage = MagicMock()
    storage.put_object_bytes = AsyncMock()
    storage.remove_object = AsyncMock()
    return storage


def upload_request(text, **kwargs):
    values = {
        "fileData": base64.b64encode(text.encode("utf-8")).decode("ascii"),
        "fileName": "manual.txt",
        "mimeType": "text/plain",
        "chunkSize": 100,
        "chunkOverlap": 0,
    }
    values.update(kwargs)
    return DocumentUploadRequest(**values)


def make_document(**overrides):
    values = {
        "id": "doc-1",
        "title": "Manual",
        "content": "Cómo instalar",
        "mime_type": "text/plain",
        "storage_path": "documents/admin/manual.txt",
        "chunk_index": 0,
        "total_chunks": 1,
        "tags": [],
        "is_public": True,
        "uploaded_by": "22222222-2222-2222-2222-222222222222",
        "metadata_": {},
    }
    values.update(overrides)
    return Document(**values)


SIXTY_WORDS = " ".join(f"palabra{i:03d}" for i in range(60))  # 11 chars with separator


class TestChunkTitle:
    def test_single_chunk_keeps_title(self):
        assert chunk_title("Manual", 0, 1) == "Manual"

    def test_numbered_parts(self):
        assert chunk_title("Manual", 2, 6) == "Manual (Parte 3/6)"


class TestUploadDocument:
    async def test_chunks_embeds_and_stores(self, documents, storage, as_admin):
        service = DocumentService(storage, FakeEmbeddings())
        db_session = AsyncMock()

        result = await service.upload_document(
            upload_request(SIXTY_WORDS, tags=["faq"]), as_admin, db_session=db_session
        )

        assert result.chunks_created == 6
        assert result.title == "manual"
        assert result.storage_path.startswith(f"documents/{as_admin.id}/")
        assert documents.created[0].title == "manual (Parte 1/6)"
        assert documents.created[0].tags == ["faq"]
        assert documents.created[0].metadata_["chunk_info"]["total"] == 6
        assert set(documents.vectors) == set(result.document_ids)
        storage.put_object_bytes.assert_awaited_once()
        db_session.commit.assert_awaited_once()

    async def test_failed_chunk_is_skipped(self, documents, storage, as_admin):
        service = DocumentService(storage, FakeEmbeddings(fail_on={2}))

        result = await service.upload_document(
            upload_request(SIXTY_WORDS), as_admin, db_session=AsyncMock()
        )

        assert result.chunks_created == 5
        assert [d.chunk_index for d in documents.created] == [0, 1, 3, 4, 5]
        assert documents.created[0].total_chunks == 6

    async def test_nothing_embedded_is_an_error(self, documents, storage, as_admin):
        service = DocumentService(storage, FakeEmbeddings(fail_on=set(range(10))))

        with pytest.raises(ExternalServiceError):
            await service.upload_document(upload_request(SIXTY_WORDS), as_admin, db_session=AsyncMock())

        storage.put_object_bytes.assert_not_awaited()

    async def test_blank_document(self, documents, storage, as_admin):
        service = DocumentService(storage, FakeEmbeddings())

        with pytest.raises(EmptyDocumentError):
            await service.upload_document(upload_request("   \n  "), as_admin, db_session=AsyncMock())

    async def test_unsupported_type(self, documents, storage, as_admin):
        service = DocumentService(storage, FakeEmbeddings())

        with pytest.raises(ValidationError):
            await service.upload_document(
                upload_request("hola", mimeType="image/png", fileName="a.png"),
                as_admin,
                db_session=AsyncMock(),
            )

    async def test_embeddings_not_configured(self, documents, storage, as_admin):
        service = DocumentService(storage, FakeEmbeddings(configured=False))

        with pytest.raises(ExternalServiceError):
            await service.upload_document(upload_request("hola"), as_admin, db_session=AsyncMock())


class TestDocumentEndpoints:
    def test_upload_requires_admin(self, client, as_user):
        response = client.post(
            "/api/v1/documents/upload",
            json={"fileData": "aG9sYQ==", "fileName": "a.txt", "mimeType": "text/plain"},
        )

        assert response.status_code == 403



class TestDocumentVisibility:
    def test_owner_and_public_rules(self):
        private = make_document(is_public=False, uploaded_by="owner")

        assert private.readable_by("owner")
        assert not private.readable_by("someone-else")
        assert private.readable_by("someone-else", is_admin=True)
        assert make_document(is_public=True).readable_by("someone-else")

    async def test_users_only_list_what_they_can_read(self, documents, storage, as_user):
        service = DocumentService(storage, FakeEmbeddings())

        await service.list_documents(
            user=as_user,
            page=2,
            limit=10,
            search=None,
            tag=None,
            mime_type=None,
            is_public=None,
            uploaded_by=None,
            db_session=AsyncMock(),
        )

        assert documents.listed["visible_to"] == as_user.id
        assert documents.listed["offset"] == 10

    async def test_admins_list_everything(self, documents, storage, as_admin):
        service = DocumentService(storage, FakeEmbeddings())

        await service.list_documents(
            user=as_admin,
            page=1,
            limit=10,
            search=None,
            tag=None,
            mime_type=None,
            is_public=None,
            uploaded_by=None,
            db_session=AsyncMock(),
        )

        assert documents.listed["visible_to"] is None

    async def test_private_document_of_another_user_is_hidden(self, documents, storage, as_user):
        documents.rows["doc-1"] = make_document(is_public=False)

        with pytest.raises(DocumentNotFoundError):
            await DocumentService(storage, FakeEmbeddings()).get_document(
                "doc-1", as_user, db_session=AsyncMock()
            )


class TestDocumentManagement:
    async def test_update_without_fields(self, documents, storage, as_admin):
        with pytest.raises(ValidationError) as exc_info:
            await DocumentService(storage, FakeEmbeddings()).update_document(
                "doc-1", {}, as_admin, db_session=AsyncMock()
            )

        assert exc_info.value.message == "No fields to update"

    async def test_update_records_fields(self, documents, storage, as_admin):
        documents.rows["doc-1"] = make_document()
        db_session = AsyncMock()

        document = await DocumentService(storage, FakeEmbeddings()).update_document(
            "doc-1", {"title": "Guía", "metadata_": {"v": 2}}, as_admin, db_session=db_session
        )

        assert document.title == "Guía"
        payload = documents_module.record_event.await_args.kwargs["payload"]
        assert payload["updated_fields"] == ["title", "metadata"]
        db_session.commit.assert_awaited_once()

    async def test_deleting_last_chunk_removes_stored_file(self, documents, storage, as_admin):
        documents.rows["doc-1"] = make_document()

        removed = await DocumentService(storage, FakeEmbeddings()).delete_document(
            "doc-1", as_admin, db_session=AsyncMock()
        )

        assert removed is True
        assert documents.deleted == ["doc-1"]
        storage.remove_object.assert_awaited_once_with("documents/admin/manual.txt")

    async def test_shared_file_is_kept_while_chunks_remain(self, documents, storage, as_admin):
        documents.rows["doc-1"] = make_document()
        documents.references = 3

        removed = await DocumentService(storage, FakeEmbeddings()).delete_document(
            "doc-1", as_admin, db_session=AsyncMock()
        )

        assert removed is False
        storage.remove_object.assert_not_awaited()

    async def test_delete_missing_document(self, documents, storage, as_admin):
        with pytest.raises(DocumentNotFoundError):
            await DocumentService(storage, FakeEmbeddings()).delete_document(
                "doc-1", as_admin, db_session=AsyncMock()
            )

    async def test_reindex_recomputes_embedding(self, documents, storage, as_admin):
        documents.rows["doc-1"] = make_document()
        embeddings = FakeEmbeddings()
        db_session = AsyncMock()

        document = await DocumentService(storage, embeddings).reindex_document(
            "doc-1", as_admin, db_session=db_session
        )

        assert document.id == "doc-1"
        assert embeddings.calls == 1
        assert "doc-1" in documents.vectors
        db_session.refresh.assert_awaited_once_with(document)

    async def test_reindex_embedding_failure(self, documents, storage, as_admin):
        documents.rows["doc-1"] = make_document()

        with pytest.raises(ExternalServiceError):
            await DocumentService(storage, FakeEmbeddings(fail_on={0})).reindex_document(
                "doc-1", as_admin, db_session=AsyncMock()
            )

        assert documents.vectors == {}


class TestDocumentManagementEndpoints:
    @pytest.fixture
    def document_service(self, app, documents, storage):
        return app.state.override(
            app.container.services.document_service, DocumentService(storage, FakeEmbeddings())
        )

    def test_patch_without_fields(self, client, as_admin, document_service):
        response = client.patch("/api/v1/documents/doc-1", json={})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "No fields to update"

    def test_delete_reports_file_removal(self, client, as_admin, document_service, documents):
        documents.rows["doc-1"] = make_document()

        response = client.delete("/api/v1/documents/doc-1")

        assert response.status_code == 200
        assert response.json()["data"]["file_removed"] is True
        assert documents.deleted == ["doc-1"]
