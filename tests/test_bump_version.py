from __future__ import annotations

from gitops_promoter.bump_version import bump_branch_name, bump_version, content_diff


def test_bump_version_opens_pr(fake_gateway_cls) -> None:
    gateway = fake_gateway_cls({"apps/web/version.yaml": "tag: v1\n"})

    created = bump_version(
        gateway,
        file_path="apps/web/version.yaml",
        new_content="tag: v2\n",
        triggering_repo="acme/web",
        triggering_sha="deadbeef",
        triggering_actor="alice",
    )

    assert created.number == 100
    ((mutation,), base, message), = gateway.commits
    assert base == "main"
    assert message == "Bumping version @ apps/web/version.yaml"
    assert mutation.content == "tag: v2\n"
    assert gateway.branches == [("commit1", "artifact_version_bump/acme/web/deadbeef")]
    (pull,) = gateway.pulls
    assert pull["title"] == "acme/web🚠 Bumping version @ apps/web/version.yaml"
    assert pull["body"] == "Bumping version triggered by acme/web@deadbeef"
    assert pull["assignee"] == "alice"
    assert gateway.merged == []


def test_bump_version_auto_merge(fake_gateway_cls) -> None:
    gateway = fake_gateway_cls({"v.yaml": "1"})
    merges = []

    bump_version(
        gateway,
        file_path="v.yaml",
        new_content="2",
        triggering_repo="acme/web",
        triggering_sha="abc",
        auto_merge=True,
        merge=lambda merge, number: merges.append(number),
    )

    assert merges == [100]


def test_bump_version_skips_unchanged_file(fake_gateway_cls) -> None:
    gateway = fake_gateway_cls({"v.yaml": "1"})

    assert (
        bump_version(
            gateway,
            file_path="v.yaml",
            new_content="1",
            triggering_repo="acme/web",
            triggering_sha="abc",
        )
        is None
    )
    assert gateway.commits == []


def test_helpers() -> None:
    assert bump_branch_name("acme/web", "abc") == "artifact_version_bump/acme/web/abc"
    diff = content_diff("v.yaml", "tag: v1\n", "tag: v2\n")
    assert "-tag: v1" in diff
    assert "+tag: v2" in diff
