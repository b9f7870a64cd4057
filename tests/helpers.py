"""Builders for raw progress records used across the stats tests."""


def activity(
    completed_at: str,
    time_spent=0,
    satisfaction=None,
    difficulty=None,
    progress_type=None,
    task_id="task-1",
    user_id="user-1",
    **extra,
) -> dict:
    """Build a raw progress record the way the progress manager stores it."""
    record = {
        "userId": user_id,
        "taskId": task_id,
        "completedAt": completed_at,
        "timeSpent": time_spent,
    }
    if satisfaction is not None:
        record["satisfaction"] = satisfaction
    if difficulty is not None:
        record["difficulty"] = difficulty
    if progress_type is not None:
        record["progressType"] = progress_type
    record.update(extra)
    return record
