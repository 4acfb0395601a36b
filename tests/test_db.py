"""Tests for the database sink, with the psycopg2 pool mocked out."""

import json
from unittest.mock import MagicMock, patch

import pytest

from freshdesk_sync.config import DatabaseConfig
from freshdesk_sync.db import Database
from freshdesk_sync.resources import Grant, Resource, ResourceId, permission_entitlement


@pytest.fixture
def pool():
    with patch("freshdesk_sync.db.psycopg2.pool.ThreadedConnectionPool") as factory:
        yield factory


@pytest.fixture
def cursor(pool):
    conn = pool.return_value.getconn.return_value
    cur = conn.cursor.return_value.__enter__.return_value
    cur.rowcount = 1
    return cur


@pytest.fixture
def db(pool):
    return Database(DatabaseConfig(url="postgresql://localhost/test"), batch_size=2)


def role(role_id, parent=None):
    return Resource(
        id=ResourceId("role", str(role_id)),
        display_name=f"Role {role_id}",
        profile={"id": role_id},
        parent_id=parent,
    )


class TestDatabase:
    def test_pool_is_built_from_config(self, pool, db):
        pool.assert_called_once_with(minconn=2, maxconn=10, dsn="postgresql://localhost/test")

    def test_resources_are_upserted_in_batches(self, pool, cursor, db):
        with patch("freshdesk_sync.db.psycopg2.extras.execute_values") as execute_values:
            total = db.upsert_resources("acme", [role(1), role(2), role(3, ResourceId("org", "x"))])

        assert total == 2
        assert execute_values.call_count == 2
        sql = execute_values.call_args_list[0][0][1]
        assert sql.startswith("INSERT INTO directory_resources")
        assert "ON CONFLICT (domain, resource_type, resource_id)" in sql
        assert "last_synced_at = NOW()" in sql

        first_batch = execute_values.call_args_list[0][0][2]
        assert first_batch[0][:4] == ("acme", "role", "1", "Role 1")
        assert json.loads(first_batch[0][7]) == {"id": 1}
        last_batch = execute_values.call_args_list[1][0][2]
        assert last_batch[0][5:7] == ("org", "x")
        assert pool.return_value.getconn.return_value.commit.call_count == 2

    def test_empty_input_touches_nothing(self, pool, db):
        with patch("freshdesk_sync.db.psycopg2.extras.execute_values") as execute_values:
            assert db.upsert_grants("acme", []) == 0
        execute_values.assert_not_called()

    def test_grant_rows(self, cursor, db):
        entitlement = permission_entitlement(role(7), "assigned")
        grant = Grant(entitlement=entitlement, principal=ResourceId("principal", "1"))

        with patch("freshdesk_sync.db.psycopg2.extras.execute_values") as execute_values:
            db.upsert_grants("acme", [grant])

        rows = execute_values.call_args[0][2]
        assert rows == [(
            "acme", "role:7:assigned:principal:1", "role:7:assigned",
            "principal", "1", "assigned",
        )]

    def test_failed_batch_rolls_back(self, pool, cursor, db):
        conn = pool.return_value.getconn.return_value
        with patch(
            "freshdesk_sync.db.psycopg2.extras.execute_values", side_effect=RuntimeError("boom")
        ):
            with pytest.raises(RuntimeError):
                db.upsert_entitlements("acme", [permission_entitlement(role(1), "assigned")])

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        pool.return_value.putconn.assert_called_once_with(conn)

    def test_run_tracking(self, cursor, db):
        run_id = db.record_run_start("acme", "role", {"resume_token": ""})
        db.record_run_end(run_id, "SUCCESS", records_upserted=4)

        insert_sql, insert_params = cursor.execute.call_args_list[0][0]
        assert "INSERT INTO sync_runs" in insert_sql
        assert insert_params[:3] == (run_id, "acme", "role")
        update_params = cursor.execute.call_args_list[1][0][1]
        assert update_params == ("SUCCESS", 4, None, None, run_id)

    def test_recent_runs_filtered_by_collection(self, cursor, db):
        cursor.description = [("id",), ("collection",), ("status",)]
        cursor.fetchall.return_value = [("r1", "group", "FAILED")]

        runs = db.get_recent_runs("acme", collection="group", limit=5)

        assert runs == [{"id": "r1", "collection": "group", "status": "FAILED"}]
        sql, params = cursor.execute.call_args[0]
        assert "AND collection = %s" in sql
        assert params == ["acme", "group", 5]

    def test_close(self, pool, db):
        db.close()
        pool.return_value.closeall.assert_called_once()
