from __future__ import annotations

from gitops_promoter.branch_naming import MAX_BRANCH_NAME_LENGTH, promotion_branch_name


def test_promotion_branch_name_is_stable() -> None:
    name = promotion_branch_name(11, "originBranch", ["targetPath1", "targetPath2"])
    assert name == "promotions/11-originBranch-676f02019f18"


def test_promotion_branch_name_replaces_slashes_in_origin_branch() -> None:
    name = promotion_branch_name(3, "feature/foo/bar", ["env/prod"])
    assert name.startswith("promotions/3-feature-foo-bar-")
    assert name.count("/") == 1


def test_promotion_branch_name_caps_long_origin_branch() -> None:
    name = promotion_branch_name(11, "originBranch" * 100, ["targetPath1", "targetPath2"])
    assert len(name) <= MAX_BRANCH_NAME_LENGTH
    assert name.endswith("-676f02019f18")


def test_promotion_branch_name_caps_long_targets() -> None:
    targets = [
        f"looo{'o' * 80}ong/target/path/{i}" for i in range(1, 21)
    ]
    name = promotion_branch_name(11, "originBranch", targets)
    assert len(name) <= MAX_BRANCH_NAME_LENGTH


def test_promotion_branch_name_differs_per_target_set() -> None:
    a = promotion_branch_name(5, "main", ["env/staging"])
    b = promotion_branch_name(5, "main", ["env/prod"])
    assert a != b


def test_promotion_branch_name_survives_huge_pr_number() -> None:
    name = promotion_branch_name(10**60, "x" * 300, ["env/prod"])
    assert len(name) <= MAX_BRANCH_NAME_LENGTH
