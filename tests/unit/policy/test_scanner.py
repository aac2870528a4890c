"""Tests for the policy scanner over real file trees."""

from __future__ import annotations

import json
import shutil
from pathlib import Path

import pytest

from forkguard.policy.catalog import DEFAULT_CATALOG, PolicyCatalog
from forkguard.policy.scanner import scan, walk_tree
from forkguard.sync.scrub import scrub

CLEAN_MANIFEST = json.dumps(
    {
        "name": "gateway",
        "dependencies": {"express": "^4.0.0"},
        "devDependencies": {"vitest": "^1.0.0"},
        "pnpm": {"onlyBuiltDependencies": ["esbuild", "sharp"]},
    }
)


def _rmtree_remover(root: Path):
    def remove(relative: str) -> None:
        shutil.rmtree(root / relative)

    return remove


def test_clean_tree_has_no_findings(make_tree) -> None:
    root = make_tree(
        {
            "package.json": CLEAN_MANIFEST,
            "extensions/discord/index.ts": "export default { register() {} };\n",
            "extensions/discord/src/client.ts": "export function connect() {\n  return 1;\n}\n",
        }
    )
    report = scan(root)
    assert report.findings == []
    assert report.clean
    assert report.exit_code == 0
    assert [rule.rule_id for rule in report.rules] == [
        "banned-directory",
        "risky-package",
        "auto-start",
        "private-key",
        "built-dependencies-drift",
    ]


def test_one_fail_finding_per_banned_directory(make_tree) -> None:
    root = make_tree(
        {
            "extensions/nostr/index.ts": "export {};\n",
            "extensions/matrix/README.md": "# matrix\n",
            "extensions/discord/index.ts": "export {};\n",
        }
    )
    findings = scan(root).for_rule("banned-directory")
    assert [(f.location, f.severity) for f in findings] == [
        ("extensions/nostr", "fail"),
        ("extensions/matrix", "fail"),
    ]


def test_banned_path_that_is_a_file_is_not_a_directory_finding(make_tree) -> None:
    root = make_tree({"extensions/twitch": "not a directory\n"})
    assert scan(root).for_rule("banned-directory") == []


def test_risky_package_in_nested_manifest_fails(make_tree) -> None:
    root = make_tree(
        {
            "package.json": CLEAN_MANIFEST,
            "extensions/discord/package.json": json.dumps({"dependencies": {"nostr-tools": "2.0.0"}}),
            "packages/store/package.json": json.dumps({"devDependencies": {"@lancedb/lancedb": "0.4.0"}}),
        }
    )
    findings = scan(root).for_rule("risky-package")
    assert [(f.location, f.severity) for f in findings] == [
        ("extensions/discord/package.json", "fail"),
        ("packages/store/package.json", "fail"),
    ]
    assert "nostr-tools" in findings[0].message


def test_vendored_manifests_are_not_scanned(make_tree) -> None:
    root = make_tree(
        {
            "node_modules/nostr-wrapper/package.json": json.dumps({"dependencies": {"nostr-tools": "2.0.0"}}),
            "extensions/discord/node_modules/x/package.json": json.dumps(
                {"dependencies": {"authenticate-pam": "1.0.0"}}
            ),
        }
    )
    assert scan(root).for_rule("risky-package") == []


def test_risky_package_only_in_build_allowlist(make_tree) -> None:
    manifest = json.dumps({"pnpm": {"onlyBuiltDependencies": ["esbuild", "nostr-tools"]}})
    root = make_tree({"package.json": manifest})
    report = scan(root)
    assert report.for_rule("risky-package") == []
    drift = report.for_rule("built-dependencies-drift")
    assert len(drift) == 1
    assert drift[0].severity == "warn"
    assert drift[0].message == "Unexpected onlyBuiltDependencies entry: nostr-tools"


def test_allowlisted_risky_package_in_expected_set_is_clean(make_tree) -> None:
    manifest = json.dumps({"pnpm": {"onlyBuiltDependencies": ["authenticate-pam"]}})
    root = make_tree({"package.json": manifest})
    assert scan(root).clean


def test_missing_root_manifest_passes_drift_rule(make_tree) -> None:
    root = make_tree({"extensions/discord/package.json": json.dumps({"pnpm": {"onlyBuiltDependencies": ["x"]}})})
    assert scan(root).for_rule("built-dependencies-drift") == []


def test_auto_start_and_private_key_warnings(make_tree) -> None:
    root = make_tree(
        {
            "extensions/beacon/src/heartbeat.ts": "setInterval(() => fetch(url), 60000);\n",
            "extensions/beacon/src/heartbeat.test.ts": "setInterval(() => {}, 1);\n",
            "extensions/wallet/src/sign.ts": "export function sign(privateKey: string) {}\n",
        }
    )
    report = scan(root)
    auto = report.for_rule("auto-start")
    keys = report.for_rule("private-key")
    assert [(f.location, f.severity) for f in auto] == [("extensions/beacon/src/heartbeat.ts", "warn")]
    assert [(f.location, f.severity) for f in keys] == [("extensions/wallet/src/sign.ts", "warn")]
    assert "line 1" in keys[0].message
    assert report.exit_code == 1


@pytest.mark.parametrize(
    "path",
    [
        "extensions/wallet/src/sign.test.ts",
        "extensions/wallet/src/keys.fixture.ts",
        "extensions/wallet/fixtures/keys.js",
    ],
)
def test_private_key_in_test_or_fixture_file_is_ignored(make_tree, path: str) -> None:
    root = make_tree({path: "const privateKey = 'abc';\n"})
    assert scan(root).for_rule("private-key") == []


def test_patterns_outside_extensions_are_ignored(make_tree) -> None:
    root = make_tree({"src/gateway/timer.ts": "setInterval(run, 5);\nconst privateKey = 1;\n"})
    assert scan(root).clean


def test_scan_is_deterministic(make_tree) -> None:
    root = make_tree(
        {
            "extensions/b/src/a.ts": "setInterval(x, 1);\n",
            "extensions/a/src/z.ts": "setInterval(x, 1);\n",
            "extensions/a/src/b.ts": "const secretKey = 1;\n",
        }
    )
    first = scan(root)
    second = scan(root)
    assert first.findings == second.findings
    assert [f.location for f in first.for_rule("auto-start")] == [
        "extensions/a/src/z.ts",
        "extensions/b/src/a.ts",
    ]


def test_walk_tree_skips_git_and_vendor_dirs(make_tree) -> None:
    root = make_tree(
        {
            ".git/config": "[core]\n",
            "node_modules/x/index.js": "",
            "b.txt": "",
            "a/c.txt": "",
        }
    )
    assert walk_tree(root) == ["b.txt", "a/c.txt"]


def test_scan_after_scrub_has_no_banned_directory_findings(make_tree) -> None:
    root = make_tree(
        {
            "extensions/voice-call/index.ts": "export {};\n",
            "extensions/voice-call/src/call.ts": "export {};\n",
            "extensions/discord/index.ts": "export {};\n",
        }
    )
    assert len(scan(root).for_rule("banned-directory")) == 1

    scrub(root, DEFAULT_CATALOG.banned_paths, remove=_rmtree_remover(root))

    assert scan(root).for_rule("banned-directory") == []
    assert (root / "extensions/discord/index.ts").exists()


def test_custom_catalog_is_honored(make_tree) -> None:
    catalog = PolicyCatalog(banned_paths=("plugins/legacy",), risky_packages=("left-pad",))
    root = make_tree(
        {
            "plugins/legacy/main.ts": "",
            "extensions/nostr/index.ts": "",
            "package.json": json.dumps({"dependencies": {"left-pad": "1.0.0"}}),
        }
    )
    report = scan(root, catalog)
    assert [f.location for f in report.for_rule("banned-directory")] == ["plugins/legacy"]
    assert [f.location for f in report.for_rule("risky-package")] == ["package.json"]


def test_scan_rejects_missing_root(tmp_path: Path) -> None:
    with pytest.raises(NotADirectoryError):
        scan(tmp_path / "missing")
