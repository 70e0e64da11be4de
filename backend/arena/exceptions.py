from fastapi import HTTPException
from pydantic import BaseModel
from typing import Optional


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str
    hint: Optional[str] = None


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
        hint: str | None = None,
    ) -> None:
        super().__init__(detail or title)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code
        self.hint = hint


class MatchNotFound(DomainException):
    def __init__(self, match_id: str) -> None:
        super().__init__(
            status_code=404,
            title="Match not found",
            detail=f"match '{match_id}' not found",
            code="match_not_found",
        )


class TeamNotFound(DomainException):
    def __init__(self, team_id: str) -> None:
        super().__init__(
            status_code=404,
            title="Team not found",
            detail=f"team '{team_id}' not found",
            code="team_not_found",
        )


class InvitationNotFound(DomainException):
    def __init__(self, invitation_id: str) -> None:
        super().__init__(
            status_code=404,
            title="Invitation not found",
            detail=f"invitation '{invitation_id}' not found",
            code="invitation_not_found",
        )


class InvalidMatchTransition(DomainException):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            status_code=409,
            title="Invalid match transition",
            detail=f"cannot move match from '{current}' to '{target}'",
            code="match_invalid_transition",
        )
        self.current = current
        self.target = target


class ActionNotAllowed(DomainException):
    """Raised when the caller's role or the match state gates an action off."""

    def __init__(self, detail: str, *, code: str, status_code: int = 403) -> None:
        super().__init__(
            status_code=status_code,
            title="Action not allowed",
            detail=detail,
            code=code,
        )


class TableMissing(DomainException):
    def __init__(self, table_name: str, create_sql: str | None = None) -> None:
        super().__init__(
            status_code=503,
            title="Table missing",
            detail=f"table '{table_name}' does not exist; run the migration below",
            code="table_missing",
            hint=create_sql,
        )
        self.table_name = table_name


def http_problem(
    status_code: int,
    detail: str,
    code: str,
    *,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    """Create an HTTPException with an attached problem code."""

    exc = HTTPException(status_code=status_code, detail=detail, headers=headers)
    setattr(exc, "code", code)
    return exc
