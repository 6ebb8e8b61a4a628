import pytest

from wrapstudio.models.variants import (
    PROOF_STAGES,
    STUDIO_VIEWS,
    VISUALIZER_ANGLES,
    Strategy,
    cartesian_plan,
    flat_plan,
    pipeline_plan,
)


def test_pipeline_stages_chain_in_order():
    plan = pipeline_plan(PROOF_STAGES)
    assert plan.strategy is Strategy.SEQUENTIAL
    assert plan.keys == ["flat-panel", "3d-proof", "print-file"]
    assert [v.depends_on for v in plan] == [None, "flat-panel", "3d-proof"]


def test_flat_plan_is_parallel_by_default():
    plan = flat_plan(VISUALIZER_ANGLES)
    assert plan.strategy is Strategy.PARALLEL
    assert plan.keys == ["hero", "side", "rear", "detail"]
    assert plan.variants[1].fields == {"angle": "side"}
    assert all(v.depends_on is None for v in plan)


def test_flat_plan_sequential_has_no_dependencies():
    plan = flat_plan(STUDIO_VIEWS, sequential=True)
    assert plan.strategy is Strategy.SEQUENTIAL
    assert len(plan) == 6
    assert all(v.depends_on is None for v in plan)


def test_cartesian_cross_product_keys():
    plan = cartesian_plan([
        ("angle", ["front", "rear"]),
        ("finish", ["gloss", "matte"]),
        ("environment", ["studio"]),
    ])
    assert plan.keys == [
        "front-gloss-studio",
        "front-matte-studio",
        "rear-gloss-studio",
        "rear-matte-studio",
    ]
    assert plan.variants[2].fields == {"angle": "rear", "finish": "gloss", "environment": "studio"}


def test_cartesian_include_filter_and_panels():
    plan = cartesian_plan(
        [("angle", ["front", "rear"]), ("finish", ["gloss", "matte"])],
        include=["rear-matte", "front-gloss", "side-satin"],
        panels=["hood", "roof"],
    )
    assert plan.keys == ["front-gloss", "rear-matte"]
    assert plan.variants[0].fields["panels"] == ["hood", "roof"]


def test_enumeration_is_deterministic():
    dims = [("angle", ["a", "b"]), ("finish", ["x", "y"])]
    assert cartesian_plan(dims).keys == cartesian_plan(dims).keys


@pytest.mark.parametrize("build", [
    lambda: flat_plan(["hero", "hero"]),
    lambda: flat_plan([]),
    lambda: pipeline_plan(["flat-panel", ""]),
    lambda: cartesian_plan([("angle", [])]),
    lambda: cartesian_plan([("angle", ["front"])], include=["rear"]),
])
def test_invalid_shapes_rejected(build):
    with pytest.raises(ValueError):
        build()
