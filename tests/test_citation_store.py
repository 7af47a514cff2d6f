import pytest
from sqlalchemy.exc import OperationalError

from cite_verifier.citation_store import CitationStore, PersistenceError
from cite_verifier.models import Citation, ValidationStatus


def make_citation(text, **kwargs):
    return Citation(original_text=text, **kwargs)


class TestCitationStore:

    def test_list_returns_insertion_order(self, store):
        for text in ["third alphabetically", "a first", "middle"]:
            store.insert(make_citation(text))
        store.commit()

        assert [c.original_text for c in store.list()] == [
            "third alphabetically", "a first", "middle"
        ]

    def test_sequence_continues_across_store_instances(self, db_session):
        first_store = CitationStore(db_session)
        first_store.insert(make_citation("one"))
        first_store.insert(make_citation("two"))
        first_store.commit()

        second_store = CitationStore(db_session)
        second_store.insert(make_citation("three"))
        second_store.commit()

        assert [c.sequence for c in second_store.list()] == [1, 2, 3]

    def test_get(self, store):
        citation = make_citation("Marbury v. Madison")
        store.insert(citation)
        store.commit()

        assert store.get(citation.id) is citation
        assert store.get("no-such-id") is None

    def test_delete(self, store):
        keep = make_citation("keep")
        drop = make_citation("drop")
        store.insert(keep)
        store.insert(drop)
        store.commit()

        store.delete(drop)
        store.commit()

        assert [c.id for c in store.list()] == [keep.id]

    def test_delete_all(self, store):
        store.insert(make_citation("one"))
        store.insert(make_citation("two"))
        store.commit()

        store.delete_all()

        assert store.list() == []
        store.insert(make_citation("again"))
        store.commit()
        assert store.list()[0].sequence == 1

    def test_commit_failure_rolls_back(self, store, db_session, monkeypatch):
        store.insert(make_citation("lost"))

        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(db_session, "commit", failing_commit)

        with pytest.raises(PersistenceError):
            store.commit()

        monkeypatch.undo()
        assert store.list() == []

    def test_statuses_round_trip(self, store, db_session):
        citation = make_citation(
            "Roe v. Wade",
            citation_status=ValidationStatus.VALID,
            case_name_status=ValidationStatus.INVALID,
        )
        store.insert(citation)
        store.commit()
        db_session.expire_all()

        loaded = store.get(citation.id)
        assert loaded.citation_status == ValidationStatus.VALID
        assert loaded.case_name_status == ValidationStatus.INVALID


class TestCitationModel:

    def test_defaults(self):
        citation = make_citation("Doe v. Roe")

        assert len(citation.id) == 36
        assert citation.created_at is not None
        assert citation.citation_status == ValidationStatus.PENDING
        assert citation.case_name_status == ValidationStatus.PENDING
        assert not citation.is_resolved

    @pytest.mark.parametrize("text", ["", "   "])
    def test_rejects_blank_text(self, text):
        with pytest.raises(ValueError):
            make_citation(text)

    def test_match_fields_move_together(self):
        citation = make_citation("Doe v. Roe")

        citation.set_match(7, "https://www.courtlistener.com/opinion/7/doe/")
        assert citation.cluster_id == "7"

        citation.clear_match()
        assert citation.cluster_id is None
        assert citation.courtlistener_url is None

    def test_resolve_pending_keeps_decided_statuses(self):
        citation = make_citation("Doe v. Roe", citation_status=ValidationStatus.VALID)

        citation.resolve_pending()

        assert citation.citation_status == ValidationStatus.VALID
        assert citation.case_name_status == ValidationStatus.INVALID
        assert citation.is_resolved
