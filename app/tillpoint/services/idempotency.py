import hashlib
import json
from dataclasses import dataclass
from datetime import datetime

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from app.tillpoint.core.error_catalog import AppError, ErrorCatalog
from app.tillpoint.core.metrics import metrics
from app.tillpoint.db.models import IdempotencyRecord
from app.tillpoint.repos.idempotency import IdempotencyLookup, IdempotencyRepository


IDEMPOTENCY_HEADER = "Idempotency-Key"
REPLAY_HEADER = "X-Idempotency-Result"


@dataclass
class IdempotencyReplay:
    status_code: int
    response_body: dict

    def as_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content=self.response_body,
            headers={REPLAY_HEADER: ErrorCatalog.IDEMPOTENCY_REPLAY.code},
        )


class IdempotencyContext:
    def __init__(self, record: IdempotencyRecord, repo: IdempotencyRepository):
        self._record = record
        self._repo = repo

    def record_success(self, *, status_code: int, response_body: dict) -> None:
        self._finish("succeeded", status_code, response_body)

    def record_failure(self, *, status_code: int, response_body: dict) -> None:
        # Never let a failed operation's pending writes ride along with this commit.
        self._repo.db.rollback()
        self._finish("failed", status_code, response_body)

    def _finish(self, state: str, status_code: int, response_body: dict) -> None:
        self._record.status_code = status_code
        self._record.response_body = json.dumps(response_body, default=str)
        self._record.state = state
        self._record.updated_at = datetime.utcnow()
        self._repo.save(self._record)


class IdempotencyService:
    def __init__(self, db):
        self.repo = IdempotencyRepository(db)

    @staticmethod
    def fingerprint(payload: object) -> str:
        payload_bytes = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
        return hashlib.sha256(payload_bytes).hexdigest()

    def start(
        self,
        *,
        tenant_id: str,
        endpoint: str,
        method: str,
        idempotency_key: str,
        request_hash: str,
    ) -> tuple[IdempotencyContext | None, IdempotencyReplay | None]:
        lookup = IdempotencyLookup(
            tenant_id=tenant_id,
            endpoint=endpoint,
            method=method,
            idempotency_key=idempotency_key,
        )
        existing = self.repo.find(lookup)
        if existing:
            return self._handle_existing(existing, request_hash)

        record = IdempotencyRecord(
            tenant_id=tenant_id,
            endpoint=endpoint,
            method=method,
            idempotency_key=idempotency_key,
            request_hash=request_hash,
            state="in_progress",
            status_code=None,
            response_body=None,
        )
        try:
            record = self.repo.save(record)
        except IntegrityError:
            self.repo.db.rollback()
            return self._handle_existing(self.repo.find(lookup), request_hash)

        return IdempotencyContext(record, self.repo), None

    def _handle_existing(
        self, existing: IdempotencyRecord | None, request_hash: str
    ) -> tuple[IdempotencyContext | None, IdempotencyReplay | None]:
        if existing is None:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        if existing.request_hash != request_hash:
            raise AppError(ErrorCatalog.IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD)
        if existing.state == "in_progress" or existing.response_body is None or existing.status_code is None:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        metrics.increment_idempotency_replay()
        return None, IdempotencyReplay(status_code=existing.status_code, response_body=json.loads(existing.response_body))


def begin_idempotent_request(request: Request, db, *, tenant_id: str, payload: dict) -> IdempotencyReplay | None:
    """Start idempotency tracking when the caller sent an ``Idempotency-Key``.

    Returns a replay to short-circuit the handler, or ``None`` after attaching the
    in-flight context to ``request.state.idempotency`` (absent key: nothing tracked).
    """
    idempotency_key = request.headers.get(IDEMPOTENCY_HEADER)
    if not idempotency_key:
        return None
    context, replay = IdempotencyService(db).start(
        tenant_id=tenant_id,
        endpoint=str(request.url.path),
        method=request.method,
        idempotency_key=idempotency_key,
        request_hash=IdempotencyService.fingerprint(payload),
    )
    if replay:
        return replay
    request.state.idempotency = context
    return None


def finish_idempotent_request(request: Request, *, status_code: int, response_body: dict) -> None:
    context = getattr(request.state, "idempotency", None)
    if context is not None:
        context.record_success(status_code=status_code, response_body=response_body)
