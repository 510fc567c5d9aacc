import pytest


class FakeResult:
    def __init__(self, rows=()) -> None:
        self.rows = list(rows)

    def scalars(self) -> "FakeResult":
        return self

    def all(self) -> list:
        return list(self.rows)

    def first(self):
        return self.rows[0] if self.rows else None


class RecordingSession:
    """AsyncSession stand-in that records statements and replays canned rows."""

    def __init__(self, *row_sets, error: Exception | None = None) -> None:
        self.results = [FakeResult(rows) for rows in row_sets]
        self.error = error
        self.statements: list = []
        self.added: list = []
        self.deleted: list = []
        self.commits = 0

    async def execute(self, statement):
        self.statements.append(statement)
        if self.error is not None:
            raise self.error
        return self.results.pop(0) if self.results else FakeResult()

    async def scalar(self, statement):
        self.statements.append(statement)
        if self.error is not None:
            raise self.error
        return 0

    def add(self, instance) -> None:
        self.added.append(instance)

    async def flush(self) -> None:
        for index, instance in enumerate(self.added):
            if getattr(instance, "id", "") is None:
                instance.id = f"new-{index}"

    async def commit(self) -> None:
        self.commits += 1

    async def refresh(self, instance) -> None:
        return None

    async def delete(self, instance) -> None:
        self.deleted.append(instance)


@pytest.fixture
def recording_session():
    return RecordingSession
