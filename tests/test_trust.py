import json
import os
import tempfile
import unittest
from pathlib import Path


class TestTrustedFolders(unittest.TestCase):
    def _with_xdg(self, td: str):
        old = os.environ.get("XDG_CONFIG_HOME")
        os.environ["XDG_CONFIG_HOME"] = td

        def restore() -> None:
            if old is None:
                os.environ.pop("XDG_CONFIG_HOME", None)
            else:
                os.environ["XDG_CONFIG_HOME"] = old

        return restore

    def test_adds_folder_once_and_preserves_other_keys(self) -> None:
        from gastown.kernel.trust import ensure_trusted_folder

        with tempfile.TemporaryDirectory() as td:
            cfg_dir = Path(td) / "copilot"
            cfg_dir.mkdir()
            cfg = cfg_dir / "config.json"
            cfg.write_text(json.dumps({"some_setting": True, "trusted_folders": ["/elsewhere"]}), encoding="utf-8")

            work = Path(td) / "rig" / "witness"
            self.assertTrue(ensure_trusted_folder(work, str(cfg_dir)))
            doc = json.loads(cfg.read_text(encoding="utf-8"))
            self.assertTrue(doc["some_setting"])
            self.assertEqual(doc["trusted_folders"], ["/elsewhere", os.path.normpath(str(work))])

            os.utime(cfg, (1_000_000, 1_000_000))
            self.assertFalse(ensure_trusted_folder(work, str(cfg_dir)))
            self.assertEqual(cfg.stat().st_mtime, 1_000_000)

    def test_trailing_separator_is_the_same_folder(self) -> None:
        from gastown.kernel.trust import ensure_trusted_folder

        with tempfile.TemporaryDirectory() as td:
            work = os.path.join(td, "work")
            cfg = Path(td) / "config.json"
            cfg.write_text(json.dumps({"trusted_folders": [work + os.sep]}), encoding="utf-8")
            self.assertFalse(ensure_trusted_folder(work, td))
            self.assertEqual(json.loads(cfg.read_text(encoding="utf-8"))["trusted_folders"], [work + os.sep])

    def test_default_location_follows_xdg_config_home(self) -> None:
        from gastown.kernel.trust import ensure_trusted_folder, trust_config_path

        with tempfile.TemporaryDirectory() as td:
            restore = self._with_xdg(td)
            try:
                self.assertEqual(trust_config_path(), Path(td) / ".copilot" / "config.json")
                self.assertTrue(ensure_trusted_folder(os.path.join(td, "w")))
                self.assertTrue((Path(td) / ".copilot" / "config.json").is_file())
            finally:
                restore()

    def test_polecat_worktrees_collapse_to_polecats_dir(self) -> None:
        from gastown.kernel.trust import trust_path_for

        with tempfile.TemporaryDirectory() as td:
            rig = Path(td) / "rig"
            a = trust_path_for("polecat", rig, rig / "polecats" / "a" / "rig")
            b = trust_path_for("polecat", rig, rig / "polecats" / "b" / "rig")
            self.assertEqual(a, os.path.normpath(str(rig / "polecats")))
            self.assertEqual(a, b)
            # A sibling that merely shares the prefix is not inside.
            other = trust_path_for("polecat", rig, rig / "polecats-old" / "a")
            self.assertEqual(other, os.path.normpath(str(rig / "polecats-old" / "a")))
            self.assertEqual(trust_path_for("witness", rig, rig / "witness"), os.path.normpath(str(rig / "witness")))

    def test_malformed_config_is_an_error(self) -> None:
        from gastown.kernel.errors import ConvergenceError
        from gastown.kernel.trust import ensure_trusted_folder

        with tempfile.TemporaryDirectory() as td:
            (Path(td) / "config.json").write_text(json.dumps({"trusted_folders": "x"}), encoding="utf-8")
            with self.assertRaises(ConvergenceError):
                ensure_trusted_folder(os.path.join(td, "w"), td)


class TestProviderTrust(unittest.TestCase):
    def _town(self, td: str, agent: str) -> Path:
        town = Path(td) / "town"
        (town / "settings").mkdir(parents=True)
        (town / "settings" / "config.json").write_text(json.dumps({"default_agent": agent}), encoding="utf-8")
        (town / "myrig").mkdir()
        return town

    def test_only_providers_with_trust_updater_are_touched(self) -> None:
        from gastown.kernel.trust import TrustRequest, ensure_provider_trusted_folder

        with tempfile.TemporaryDirectory() as td:
            cfg_dir = Path(td) / "cfg"
            town = self._town(td, "claude")
            req = TrustRequest(
                role="witness",
                town_root=str(town),
                rig_path=str(town / "myrig"),
                work_dir=str(town / "myrig" / "witness"),
                config_dir=str(cfg_dir),
            )
            self.assertFalse(ensure_provider_trusted_folder(req))
            self.assertFalse((cfg_dir / "config.json").exists())

            (town / "settings" / "config.json").write_text(json.dumps({"default_agent": "copilot"}), encoding="utf-8")
            self.assertTrue(ensure_provider_trusted_folder(req))
            doc = json.loads((cfg_dir / "config.json").read_text(encoding="utf-8"))
            self.assertEqual(doc["trusted_folders"], [os.path.normpath(str(town / "myrig" / "witness"))])

    def test_agent_override_selects_provider(self) -> None:
        from gastown.kernel.trust import TrustRequest, ensure_provider_trusted_folder

        with tempfile.TemporaryDirectory() as td:
            cfg_dir = Path(td) / "cfg"
            town = self._town(td, "claude")
            rig = town / "myrig"
            req = TrustRequest(
                role="polecat",
                town_root=str(town),
                rig_path=str(rig),
                work_dir=str(rig / "polecats" / "toast" / "myrig"),
                agent_override="copilot",
                config_dir=str(cfg_dir),
            )
            self.assertTrue(ensure_provider_trusted_folder(req))
            doc = json.loads((cfg_dir / "config.json").read_text(encoding="utf-8"))
            self.assertEqual(doc["trusted_folders"], [os.path.normpath(str(rig / "polecats"))])

    def test_polecat_worktrees_share_one_document_entry(self) -> None:
        from gastown.kernel.trust import TrustRequest, ensure_provider_trusted_folder

        with tempfile.TemporaryDirectory() as td:
            cfg_dir = Path(td) / "cfg"
            town = self._town(td, "copilot")
            rig = town / "myrig"
            results = []
            for name in ("a", "b"):
                req = TrustRequest(
                    role="polecat",
                    town_root=str(town),
                    rig_path=str(rig),
                    work_dir=str(rig / "polecats" / name / "x"),
                    config_dir=str(cfg_dir),
                )
                results.append(ensure_provider_trusted_folder(req))
            self.assertEqual(results, [True, False])
            doc = json.loads((cfg_dir / "config.json").read_text(encoding="utf-8"))
            self.assertEqual(doc["trusted_folders"], [os.path.normpath(str(rig / "polecats"))])

    def test_undecodable_config_is_wrapped(self) -> None:
        from gastown.kernel.errors import ConvergenceError
        from gastown.kernel.trust import TrustRequest, ensure_provider_trusted_folder

        with tempfile.TemporaryDirectory() as td:
            cfg_dir = Path(td) / "cfg"
            cfg_dir.mkdir()
            (cfg_dir / "config.json").write_bytes(b'{"trusted_folders": ["\xff\xfe"]}')
            town = self._town(td, "copilot")
            req = TrustRequest(
                role="witness",
                town_root=str(town),
                rig_path=str(town / "myrig"),
                work_dir=str(town / "myrig" / "witness"),
                config_dir=str(cfg_dir),
            )
            with self.assertRaises(ConvergenceError) as cm:
                ensure_provider_trusted_folder(req)
            self.assertEqual(cm.exception.op, "updating trusted_folders")
            self.assertIn("config.json", str(cm.exception))

    def test_empty_work_dir_is_a_no_op(self) -> None:
        from gastown.kernel.trust import TrustRequest, ensure_provider_trusted_folder

        self.assertFalse(ensure_provider_trusted_folder(TrustRequest(role="witness", agent_override="copilot")))


if __name__ == "__main__":
    unittest.main()
