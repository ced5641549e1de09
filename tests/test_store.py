"""Tests for the SQLite and Firestore workout stores."""

import os
from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest

from workout_repository import WorkoutRepository
from workout_store import (
    FIRESTORE_BATCH_SIZE,
    FirestoreWorkoutStore,
    SQLiteWorkoutStore,
    open_store,
)

LOCAL_MIDNIGHT = datetime(2024, 1, 12).astimezone()


def _workout(workout_id, day, name="Push Day"):
    return {
        "id": workout_id,
        "name": name,
        "date": day,
        "exercises": [{"id": f"{workout_id}_exercise_1", "workoutId": workout_id, "name": "Dip"}],
    }


def _log(workout_id, logged_at="2024-01-12T18:00:00+00:00"):
    return {
        "workoutId": workout_id,
        "exerciseId": f"{workout_id}_exercise_1",
        "loggedAt": logged_at,
        "actual": {"sets": [{"reps": 10}]},
        "comments": "",
    }


class TestSQLiteStore:
    def test_creates_parent_directory(self, tmp_path) -> None:
        path = tmp_path / "nested" / "dir" / "workouts.db"
        SQLiteWorkoutStore(str(path))
        assert os.path.exists(path)

    def test_new_ids_are_unique(self, store) -> None:
        assert len({store.new_id() for _ in range(50)}) == 50

    def test_save_and_get(self, store) -> None:
        store.save_workouts([_workout("w1", "2024-01-12")])
        assert store.get_workout("w1") == _workout("w1", "2024-01-12")
        assert store.get_workout("w2") is None

    def test_save_is_atomic(self, store) -> None:
        store.save_workouts([_workout("w1", "2024-01-12")])
        with pytest.raises(Exception):
            store.save_workouts([_workout("w2", "2024-01-13"), _workout("w1", "2024-01-14")])
        assert store.get_workout("w2") is None

    def test_find_by_date(self, store) -> None:
        store.save_workouts([_workout("w1", "2024-01-12"), _workout("w2", "2024-01-13")])
        assert [w["id"] for w in store.find_workouts_by_date("2024-01-13")] == ["w2"]
        assert store.find_workouts_by_date("2024-01-14") == []

    def test_list_range_is_half_open(self, store) -> None:
        store.save_workouts([_workout(f"w{n}", f"2024-01-1{n}") for n in range(5)])
        workouts = store.list_workouts("2024-01-11", "2024-01-13")
        assert [w["date"] for w in workouts] == ["2024-01-12", "2024-01-11"]

    def test_update_only_given_fields(self, store) -> None:
        store.save_workouts([_workout("w1", "2024-01-12")])
        store.update_workout("w1", {"name": "Leg Day"})
        workout = store.get_workout("w1")
        assert workout["name"] == "Leg Day"
        assert workout["date"] == "2024-01-12"
        assert workout["exercises"] == _workout("w1", "2024-01-12")["exercises"]

    def test_delete_removes_only_own_logs(self, store) -> None:
        store.save_workouts([_workout("w1", "2024-01-12"), _workout("w2", "2024-01-13")])
        for _ in range(2):
            store.add_exercise_log(_log("w1"))
        store.add_exercise_log(_log("w2"))

        assert store.delete_workout("w1") == 2
        assert store.get_workout("w1") is None
        assert len(store.get_exercise_logs("w2")) == 1


class TestFirestoreStore:
    @pytest.fixture
    def client(self):
        return MagicMock()

    @pytest.fixture
    def firestore_store(self, client):
        return FirestoreWorkoutStore(client)

    def test_save_commits_in_chunks(self, firestore_store, client) -> None:
        workouts = [_workout(f"w{n}", "2024-01-12") for n in range(FIRESTORE_BATCH_SIZE + 50)]
        firestore_store.save_workouts(workouts)

        batch = client.batch.return_value
        assert client.batch.call_count == 2
        assert batch.set.call_count == FIRESTORE_BATCH_SIZE + 50
        assert batch.commit.call_count == 2

    def test_dates_are_stored_as_local_midnight(self, firestore_store, client) -> None:
        firestore_store.save_workouts([_workout("w1", "2024-01-12")])

        workouts = client.collection.return_value
        workouts.document.assert_called_with("w1")
        _, data = client.batch.return_value.set.call_args.args
        assert "id" not in data
        assert isinstance(data["date"], datetime)
        assert data["date"] == LOCAL_MIDNIGHT

    def test_create_through_repository(self, client, workout_data) -> None:
        workouts = client.collection.return_value
        workouts.document.return_value.id = "w1"
        repository = WorkoutRepository(FirestoreWorkoutStore(client), today=lambda: date(2024, 1, 10))

        repository.create(workout_data)

        workouts.where.assert_called_with("date", "==", LOCAL_MIDNIGHT)
        _, data = client.batch.return_value.set.call_args.args
        assert data["date"] == LOCAL_MIDNIGHT

    def test_range_query_uses_timestamps(self, firestore_store, client) -> None:
        firestore_store.list_workouts("2024-01-12", "2024-01-13")
        workouts = client.collection.return_value
        workouts.where.assert_called_once_with("date", ">=", LOCAL_MIDNIGHT)
        workouts.where.return_value.where.assert_called_once_with(
            "date", "<", datetime(2024, 1, 13).astimezone()
        )

    def test_update_converts_date(self, firestore_store, client) -> None:
        firestore_store.update_workout("w1", {"date": "2024-01-12", "name": "Leg Day"})
        document = client.collection.return_value.document.return_value
        document.update.assert_called_once_with({"date": LOCAL_MIDNIGHT, "name": "Leg Day"})

    def test_get_missing_workout(self, firestore_store, client) -> None:
        snapshot = client.collection.return_value.document.return_value.get.return_value
        snapshot.exists = False
        assert firestore_store.get_workout("w1") is None

    def test_get_workout_reads_timestamp_as_day(self, firestore_store, client) -> None:
        snapshot = client.collection.return_value.document.return_value.get.return_value
        snapshot.exists = True
        snapshot.id = "w1"
        snapshot.to_dict.return_value = {
            "name": "Push Day",
            "date": LOCAL_MIDNIGHT.astimezone(timezone.utc),
            "exercises": [],
        }

        assert firestore_store.get_workout("w1") == {
            "id": "w1",
            "name": "Push Day",
            "date": "2024-01-12",
            "exercises": [],
        }

    def test_delete_is_one_batch(self, firestore_store, client) -> None:
        logs = [MagicMock() for _ in range(3)]
        client.collection.return_value.where.return_value.stream.return_value = iter(logs)

        assert firestore_store.delete_workout("w1") == 3

        batch = client.batch.return_value
        client.batch.assert_called_once()
        assert batch.delete.call_count == 4
        batch.delete.assert_any_call(logs[0].reference)
        batch.commit.assert_called_once()

    def test_add_exercise_log_stores_timestamp(self, firestore_store, client) -> None:
        ref = MagicMock()
        ref.id = "log1"
        client.collection.return_value.add.return_value = (None, ref)

        assert firestore_store.add_exercise_log(_log("w1")) == "log1"
        client.collection.assert_called_with("exerciseLogs")
        (data,) = client.collection.return_value.add.call_args.args
        assert data["loggedAt"] == datetime(2024, 1, 12, 18, tzinfo=timezone.utc)

    def test_logs_come_back_oldest_first(self, firestore_store, client) -> None:
        docs = []
        for log_id, hour in (("late", 19), ("early", 17)):
            doc = MagicMock()
            doc.id = log_id
            doc.to_dict.return_value = {
                **_log("w1"),
                "loggedAt": datetime(2024, 1, 12, hour, tzinfo=timezone.utc),
            }
            docs.append(doc)
        client.collection.return_value.where.return_value.stream.return_value = iter(docs)

        logs = firestore_store.get_exercise_logs("w1")
        assert [log["id"] for log in logs] == ["early", "late"]
        assert logs[0]["loggedAt"] == "2024-01-12T17:00:00+00:00"


class TestOpenStore:
    def test_sqlite(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr("workout_config.DB_PATH", str(tmp_path / "workouts.db"))
        assert isinstance(open_store("sqlite"), SQLiteWorkoutStore)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="Unknown WORKOUT_STORE backend"):
            open_store("postgres")
