import enum


class EntityType(str, enum.Enum):
    NOTE = "note"
    FOLDER = "folder"


class AccessLevel(str, enum.Enum):
    VIEW = "view"
    EDIT = "edit"

    @property
    def rank(self) -> int:
        return _ACCESS_RANK[self]

    def satisfies(self, required: "AccessLevel") -> bool:
        """edit implies view; view does not imply edit"""
        return self.rank >= AccessLevel(required).rank


_ACCESS_RANK = {AccessLevel.VIEW: 1, AccessLevel.EDIT: 2}


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


def enum_values(enum_cls):
    """Persist enum values ("note") rather than member names ("NOTE")"""
    return [member.value for member in enum_cls]
