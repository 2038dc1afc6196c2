from dataclasses import dataclass

READ_SCOPE = "posting_rights:read"
ADMIN_SCOPE = "posting_rights:admin"


@dataclass(slots=True)
class Principal:
    subject: str
    scopes: set[str]
    actor_id: str | None = None

    def require_scopes(self, required: set[str]) -> None:
        missing = required - self.scopes
        if missing:
            raise PermissionError(f"missing required scopes: {sorted(missing)}")
