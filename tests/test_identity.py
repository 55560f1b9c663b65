"""
tests.test_identity
~~~~~~~~~~~~~~~~~~~

本地身份存储测试：ID 幂等、跨实例持久化、存储不可用时的降级。
"""
from __future__ import annotations

import json
from pathlib import Path

from debate_client.schemas.room import UserInfo
from debate_client.services.identity import IdentityStore


class TestParticipantId:
    """测试参与者 ID 的生成与持久化。"""

    def test_idempotent(self, tmp_path: Path) -> None:
        store = IdentityStore(str(tmp_path / "identity.json"))

        assert store.get_or_create_participant_id() == store.get_or_create_participant_id()

    def test_persisted_across_instances(self, tmp_path: Path) -> None:
        """新的存储实例读到同一个 ID（相当于刷新页面）。"""
        path = str(tmp_path / "nested" / "identity.json")
        first = IdentityStore(path).get_or_create_participant_id()
        second = IdentityStore(path).get_or_create_participant_id()

        assert first == second
        assert json.loads(Path(path).read_text(encoding="utf-8"))["userId"] == first

    def test_existing_id_is_reused(self, tmp_path: Path) -> None:
        path = tmp_path / "identity.json"
        path.write_text(json.dumps({"userId": "stored-id"}), encoding="utf-8")

        assert IdentityStore(str(path)).get_or_create_participant_id() == "stored-id"

    def test_unwritable_storage_falls_back_to_memory(self, tmp_path: Path) -> None:
        """存储不可写时不抛异常，本进程内 ID 保持稳定。"""
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("x", encoding="utf-8")
        store = IdentityStore(str(blocker / "identity.json"))

        participant_id = store.get_or_create_participant_id()

        assert participant_id
        assert store.get_or_create_participant_id() == participant_id

    def test_corrupt_file_regenerates(self, tmp_path: Path) -> None:
        path = tmp_path / "identity.json"
        path.write_text("{not json", encoding="utf-8")
        store = IdentityStore(str(path))

        participant_id = store.get_or_create_participant_id()

        assert participant_id
        assert json.loads(path.read_text(encoding="utf-8"))["userId"] == participant_id

    def test_resolve_identity(self, tmp_path: Path) -> None:
        store = IdentityStore(str(tmp_path / "identity.json"))

        identity = store.resolve_identity("Alice")

        assert identity.display_name == "Alice"
        assert identity.id == store.get_or_create_participant_id()


class TestSavedUser:
    """测试登录用户的保存与清除。"""

    def test_save_and_load(self, tmp_path: Path) -> None:
        path = str(tmp_path / "identity.json")
        store = IdentityStore(path)
        store.save_user(UserInfo(id=store.get_or_create_participant_id(), name="alice"))

        loaded = IdentityStore(path).load_user()

        assert loaded is not None
        assert loaded.name == "alice"

    def test_load_without_user(self, tmp_path: Path) -> None:
        assert IdentityStore(str(tmp_path / "identity.json")).load_user() is None

    def test_invalid_saved_user_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "identity.json"
        path.write_text(json.dumps({"userId": "u1", "user": {"id": ""}}), encoding="utf-8")

        assert IdentityStore(str(path)).load_user() is None

    def test_clear_user_keeps_participant_id(self, tmp_path: Path) -> None:
        path = str(tmp_path / "identity.json")
        store = IdentityStore(path)
        participant_id = store.get_or_create_participant_id()
        store.save_user(UserInfo(id=participant_id, name="alice"))

        store.clear_user()

        fresh = IdentityStore(path)
        assert fresh.load_user() is None
        assert fresh.get_or_create_participant_id() == participant_id
