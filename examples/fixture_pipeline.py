"""
Fixture Pipeline Example

Runs the whole proof lifecycle against the fixture toolchain and an in-memory
artifact store, so no circom, snarkjs or stellar install is needed.

Builds the example registry, proves a new description is absent, verifies,
submits and registers it, then shows what happens for an existing entry.
"""

from pathlib import Path

from nonmembership_zk.pipeline import (
    DeploymentConfig,
    FixtureToolchain,
    InMemoryArtifactStore,
    ProofPipeline,
    Stage,
)
from nonmembership_zk.pipeline.submission import encode_submission
from nonmembership_zk.registry import (
    CandidateAlreadyRegisteredError,
    Sha256FieldHasher,
    load_registry,
)

REGISTRY_FILE = Path(__file__).parent / "registry.yaml"
NEW_AGENT = "Marketing Content Generator - Creates social media posts"


def main():
    print("\n" + "=" * 70)
    print("Non-membership proof lifecycle - fixture run")
    print("=" * 70)

    print("\n1. Building registry tree...")
    snapshot = load_registry(REGISTRY_FILE)
    tree = snapshot.build_tree(Sha256FieldHasher())
    for idx, description in enumerate(snapshot.descriptions):
        print(f"  [{idx}] {description[:50]}")
    print(f"  root: {tree.root}")

    deployment = DeploymentConfig(
        contract_id="CFIXTURE",
        network="local",
        rpc_url="http://localhost:8000/soroban/rpc",
        deployed_at="2025-01-01T00:00:00.000Z",
    )
    pipeline = ProofPipeline(InMemoryArtifactStore(deployment), FixtureToolchain())

    print(f"\n2. Proving non-membership of: {NEW_AGENT!r}")
    results = pipeline.run(tree, NEW_AGENT)
    for stage in results:
        print(f"  ✓ {stage.label}")

    params = encode_submission(results[Stage.PROOF_GENERATED])
    print("\n3. Contract arguments:")
    for name, value in params.as_contract_args():
        print(f"  --{name} {value}")

    print("\n4. Trying an existing entry...")
    try:
        pipeline.run(tree, snapshot.descriptions[0])
    except CandidateAlreadyRegisteredError as e:
        print(f"  ✗ {e}")

    print("\n" + "=" * 70)


if __name__ == "__main__":
    main()
