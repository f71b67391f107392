import json
import tempfile
import unittest
from pathlib import Path


class TestAgentResolution(unittest.TestCase):
    def _write(self, path: Path, doc) -> None:
        path.mkdir(parents=True, exist_ok=True)
        (path / "config.json").write_text(json.dumps(doc), encoding="utf-8")

    def test_defaults_to_claude(self) -> None:
        from gastown.kernel.settings import resolve_role_agent_config

        with tempfile.TemporaryDirectory() as td:
            rc = resolve_role_agent_config("witness", td, str(Path(td) / "rig"))
            self.assertEqual(rc.provider, "claude")

    def test_priority_order(self) -> None:
        from gastown.kernel.settings import resolve_agent_config, resolve_role_agent_config

        with tempfile.TemporaryDirectory() as td:
            town = Path(td)
            rig = town / "rig"
            self._write(town / "settings", {"default_agent": "codex", "role_agents": {"witness": "gemini"}})
            self.assertEqual(resolve_agent_config(str(town), str(rig)).provider, "codex")
            self.assertEqual(resolve_role_agent_config("witness", str(town), str(rig)).provider, "gemini")
            self.assertEqual(resolve_role_agent_config("refinery", str(town), str(rig)).provider, "codex")

            self._write(rig / "settings", {"agent": "copilot", "role_agents": {"witness": "opencode"}})
            self.assertEqual(resolve_agent_config(str(town), str(rig)).provider, "copilot")
            self.assertEqual(resolve_role_agent_config("witness", str(town), str(rig)).provider, "opencode")
            self.assertEqual(resolve_role_agent_config("refinery", str(town), str(rig)).provider, "copilot")

    def test_unknown_agents(self) -> None:
        from gastown.kernel.errors import ConfigError
        from gastown.kernel.settings import resolve_agent_config, resolve_agent_config_with_override

        with tempfile.TemporaryDirectory() as td:
            self._write(Path(td) / "settings", {"default_agent": "mystery"})
            self.assertEqual(resolve_agent_config(td, "").provider, "claude")
            with self.assertRaises(ConfigError):
                resolve_agent_config_with_override(td, "", "mystery")
            self.assertEqual(resolve_agent_config_with_override(td, "", "Copilot").provider, "copilot")

    def test_custom_agent_alias(self) -> None:
        from gastown.kernel.settings import resolve_agent_config_with_override

        with tempfile.TemporaryDirectory() as td:
            (Path(td) / "settings").mkdir()
            (Path(td) / "settings" / "config.json").write_text(
                "agents:\n  fast:\n    provider: claude\n    args: ['--model', 'haiku']\n    env: {X: '1'}\n",
                encoding="utf-8",
            )
            rc = resolve_agent_config_with_override(td, "", "fast")
            self.assertEqual(rc.provider, "claude")
            self.assertEqual(rc.command, "claude")
            self.assertEqual(rc.args, ["--model", "haiku"])
            self.assertEqual(rc.env, {"X": "1"})
            self.assertEqual(rc.ready_prompt_prefix, "❯")

    def test_malformed_settings_is_an_error(self) -> None:
        from gastown.kernel.errors import ConfigError
        from gastown.kernel.settings import load_settings

        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "config.json"
            p.write_text("- just\n- a list\n", encoding="utf-8")
            with self.assertRaises(ConfigError):
                load_settings(p)
            p.write_text("{a: [", encoding="utf-8")
            with self.assertRaises(ConfigError):
                load_settings(p)


class TestRoleConfigSource(unittest.TestCase):
    def test_file_source(self) -> None:
        from gastown.kernel.errors import ConfigError
        from gastown.kernel.role_config import FileRoleConfigSource, role_bead_id

        with tempfile.TemporaryDirectory() as td:
            src = FileRoleConfigSource.for_town(Path(td))
            self.assertIsNone(src.get_role_config(role_bead_id("witness")))

            src.directory.mkdir(parents=True)
            (src.directory / "hq-witness-role.yaml").write_text(
                "start_command: exec claude\nenv_vars:\n  A: '{rig}'\n", encoding="utf-8"
            )
            cfg = src.get_role_config("hq-witness-role")
            self.assertEqual(cfg.id, "hq-witness-role")
            self.assertEqual(cfg.start_command, "exec claude")
            self.assertEqual(cfg.env_vars, {"A": "{rig}"})

            (src.directory / "hq-crew-role.yaml").write_text("env_vars: [1, 2]\n", encoding="utf-8")
            with self.assertRaises(ConfigError):
                src.get_role_config("hq-crew-role")


if __name__ == "__main__":
    unittest.main()
