"""Error taxonomy for combat resolution.

Validation errors reject a call before anything is mutated.  Integrity errors
mean the stored state is structurally broken (empty turn order, dangling
actor) and are never repaired by guessing.  Persistence errors are not wrapped;
SQLAlchemy exceptions propagate to the caller unchanged.
"""


class CombatError(Exception):
    """Base class for turn resolution failures."""


class CombatValidationError(CombatError, ValueError):
    """The request itself is malformed or refers to something that does not exist."""


class CombatSessionNotFound(CombatValidationError):
    def __init__(self, combat_session_id: int):
        super().__init__(f"Combat session {combat_session_id} not found")
        self.combat_session_id = combat_session_id


class CombatIntegrityError(CombatError):
    """Stored combat state violates a structural invariant."""
