import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock


class TestProviderRegistry(unittest.TestCase):
    def test_provider_for_uses_command_basename(self) -> None:
        from gastown.contracts.v1 import RuntimeConfig
        from gastown.kernel.runtime import provider_for

        self.assertEqual(provider_for(RuntimeConfig(command="/usr/bin/copilot")).name, "copilot")
        self.assertEqual(provider_for(RuntimeConfig(provider="codex", command="wrapper")).name, "codex")
        self.assertIsNone(provider_for(RuntimeConfig(command="mystery")))
        self.assertIsNone(provider_for(None))

    def test_default_configs(self) -> None:
        from gastown.kernel.runtime import default_runtime_config

        copilot = default_runtime_config("copilot")
        self.assertEqual(copilot.hooks.dir, ".github/hooks")
        self.assertEqual(copilot.hooks.settings_file, "gastown.json")
        self.assertEqual(copilot.ready_prompt_prefix, "❯")
        self.assertEqual(copilot.ready_delay_ms, 3000)
        self.assertEqual(copilot.prompt_flag, "-i")
        self.assertEqual(default_runtime_config().provider, "claude")
        self.assertEqual(default_runtime_config().session_id_env, "CLAUDE_SESSION_ID")

    def test_session_id_from_env(self) -> None:
        from gastown.kernel.runtime import session_id_from_env

        env = {"GT_SESSION_ID_ENV": "MY_ID", "MY_ID": "abc", "CLAUDE_SESSION_ID": "fallback"}
        with mock.patch.dict(os.environ, env, clear=True):
            self.assertEqual(session_id_from_env(), "abc")
        with mock.patch.dict(os.environ, {"GT_SESSION_ID_ENV": "MY_ID", "CLAUDE_SESSION_ID": "fb"}, clear=True):
            self.assertEqual(session_id_from_env(), "fb")
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(session_id_from_env(), "")

    def test_detect_runtime(self) -> None:
        from gastown.kernel.runtime import detect_all_runtimes, detect_runtime

        with mock.patch("gastown.kernel.runtime.shutil.which", return_value="/bin/codex"):
            info = detect_runtime("codex")
        self.assertTrue(info.available)
        self.assertEqual(info.path, "/bin/codex")
        self.assertFalse(detect_runtime("mystery").available)
        self.assertEqual(len(detect_all_runtimes()), 5)


class TestStartupFallback(unittest.TestCase):
    def test_claude_hooks_cover_startup(self) -> None:
        from gastown.kernel.runtime import default_runtime_config, startup_fallback_commands

        self.assertEqual(startup_fallback_commands("witness", default_runtime_config("claude")), [])

    def test_providers_without_hooks_get_fallback(self) -> None:
        from gastown.kernel.runtime import default_runtime_config, startup_fallback_commands

        self.assertEqual(
            startup_fallback_commands("witness", default_runtime_config("codex")),
            ["gt prime && gt mail check --inject && gt nudge deacon session-started"],
        )
        self.assertEqual(
            startup_fallback_commands("crew", default_runtime_config("gemini")),
            ["gt prime && gt nudge deacon session-started"],
        )

    def test_copilot_hooks_checked_in_work_dir(self) -> None:
        from gastown.kernel.hooks import ensure_settings_for_role
        from gastown.kernel.runtime import default_runtime_config, hooks_available, startup_fallback_commands

        rc = default_runtime_config("copilot")
        with tempfile.TemporaryDirectory() as td:
            self.assertFalse(hooks_available(rc, Path(td)))
            self.assertEqual(len(startup_fallback_commands("polecat", rc, Path(td))), 1)
            ensure_settings_for_role(Path(td), "polecat", rc)
            self.assertTrue(hooks_available(rc, Path(td)))
            self.assertEqual(startup_fallback_commands("polecat", rc, Path(td)), [])

    def test_home_scoped_hooks(self) -> None:
        from gastown.kernel.runtime import default_runtime_config, hooks_available

        rc = default_runtime_config("opencode")
        with tempfile.TemporaryDirectory() as td:
            with mock.patch.dict(os.environ, {"HOME": td}):
                self.assertFalse(hooks_available(rc))
                p = Path(td) / ".opencode" / "plugin" / "gastown.js"
                p.parent.mkdir(parents=True)
                p.write_text("", encoding="utf-8")
                self.assertTrue(hooks_available(rc))


class TestRoles(unittest.TestCase):
    def test_session_names_and_addresses(self) -> None:
        from gastown.kernel.roles import RoleIdentity

        self.assertEqual(RoleIdentity("witness", "myrig").session_name, "gt-myrig-witness")
        self.assertEqual(RoleIdentity("polecat", "myrig", "toast").session_name, "gt-myrig-toast")
        self.assertEqual(RoleIdentity("crew", "myrig", "joe").session_name, "gt-myrig-crew-joe")
        self.assertEqual(RoleIdentity("mayor").session_name, "hq-mayor")
        self.assertEqual(RoleIdentity("witness", "myrig").address, "myrig/witness")
        self.assertEqual(RoleIdentity("deacon").address, "deacon/")

    def test_validation(self) -> None:
        from gastown.kernel.roles import RoleIdentity

        with self.assertRaises(ValueError):
            RoleIdentity("janitor", "myrig")
        with self.assertRaises(ValueError):
            RoleIdentity("witness", "")
        with self.assertRaises(ValueError):
            RoleIdentity("polecat", "myrig")

    def test_role_types(self) -> None:
        from gastown.kernel.roles import RoleType, role_type_for

        for role in ("polecat", "witness", "refinery", "deacon"):
            self.assertIs(role_type_for(role), RoleType.AUTONOMOUS)
        for role in ("mayor", "crew", "anything"):
            self.assertIs(role_type_for(role), RoleType.INTERACTIVE)

    def test_work_dir_candidates(self) -> None:
        from gastown.kernel.roles import RoleIdentity, settings_dir_for, work_dir_candidates

        rig = Path("/t/myrig")
        town = Path("/t")
        w = RoleIdentity("witness", "myrig")
        self.assertEqual(work_dir_candidates(w, rig, town), [rig / "witness" / "rig", rig / "witness", rig])
        self.assertEqual(settings_dir_for(w, rig, town), rig / "witness")
        m = RoleIdentity("mayor")
        self.assertEqual(settings_dir_for(m, rig, town), town / "mayor")


if __name__ == "__main__":
    unittest.main()
