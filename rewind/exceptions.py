"""버전 추적/되감기 기능에서 사용하는 예외 계층입니다."""


class RewindError(Exception):
    """모든 rewind 예외의 공통 부모."""


class NotVersionTracked(RewindError):
    def __init__(self, entity):
        name = type(entity).__name__
        super().__init__(f"{name} must implement Versionable (e.g. via the Rewindable mixin) in order to access rewind functionality.")
        self.entity = entity


class MissingVersionPointerColumn(RewindError):
    def __init__(self, entity, column_name: str = "current_version"):
        name = type(entity).__name__
        table = getattr(entity, "__tablename__", "?")
        super().__init__(
            f"{name}'s table ({table}) does not have a {column_name} column. "
            f"Use add_version_pointer_column() to add it."
        )
        self.entity = entity
        self.column_name = column_name


class VersionNotFound(RewindError):
    def __init__(self, entity_type: str, entity_id, version: int):
        super().__init__(f"Version {version} does not exist for {entity_type}#{entity_id}.")
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.version = version


class LockAcquisitionTimeout(RewindError):
    def __init__(self, key: str, timeout: float):
        super().__init__(f"Could not acquire lock {key} within {timeout}s.")
        self.key = key
        self.timeout = timeout


class InvalidConfiguration(RewindError):
    @classmethod
    def model_is_not_valid(cls, model_path: str, reason: str = "") -> "InvalidConfiguration":
        detail = f" ({reason})" if reason else ""
        return cls(f"The model [{model_path}] isn't a valid version record model{detail}.")
