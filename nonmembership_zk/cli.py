"""
Command-Line Interface for the non-membership proof registry

Runs the proof lifecycle one stage at a time (compile, setup, generate,
verify, submit, register) or end to end with ``run``.
"""

import functools
import logging
import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from nonmembership_zk import __version__, print_disclaimer
from nonmembership_zk.pipeline.artifacts import DeploymentConfig, utc_timestamp
from nonmembership_zk.pipeline.errors import PipelineError
from nonmembership_zk.pipeline.runner import ProofPipeline
from nonmembership_zk.pipeline.settings import PipelineSettings
from nonmembership_zk.pipeline.stages import STAGE_ORDER, Stage
from nonmembership_zk.pipeline.store import DEPLOYMENT_PROFILES
from nonmembership_zk.registry.exceptions import RegistryError
from nonmembership_zk.registry.field import to_hex32
from nonmembership_zk.registry.hashing import open_hash_provider
from nonmembership_zk.registry.merkle import MerkleTree
from nonmembership_zk.registry.snapshot import RegistrySnapshot, load_registry

DEFAULT_REGISTRY_FILE = "registry.yaml"


def _ok(message: str) -> None:
    click.echo(click.style(f"✓ {message}", fg="green"))


def _fail(message: str) -> None:
    click.echo(click.style(f"✗ {message}", fg="red"), err=True)
    sys.exit(1)


def reports_errors(func):
    """Turn library errors into a red message and exit status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (PipelineError, RegistryError) as e:
            _fail(str(e))

    return wrapper


def _pipeline(settings: PipelineSettings) -> ProofPipeline:
    return ProofPipeline(settings.make_store(), settings.make_toolchain())


def _snapshot(
    settings: PipelineSettings, registry: Optional[str], levels: Optional[int]
) -> RegistrySnapshot:
    if registry is None:
        default = settings.config_dir / DEFAULT_REGISTRY_FILE
        if not default.exists():
            return RegistrySnapshot(
                levels=levels if levels is not None else settings.levels,
                descriptions=(),
            )
        registry = str(default)
    return load_registry(registry, levels=levels)


def _short(value: int) -> str:
    digits = to_hex32(value)
    return f"{digits[:8]}…{digits[-4:]}"


registry_option = click.option(
    "--registry",
    type=click.Path(exists=True, dir_okay=False),
    help=f"Registry YAML (default: <config-dir>/{DEFAULT_REGISTRY_FILE} if present)",
)
levels_option = click.option(
    "--levels",
    type=click.IntRange(1, 20),
    help="Tree depth, overrides the registry file",
)
node_cwd_option = click.option(
    "--node-cwd",
    type=click.Path(exists=True, file_okay=False),
    help="Directory whose node_modules provides circomlibjs (poseidon only)",
)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--build-dir",
    type=click.Path(file_okay=False),
    help="Artifact directory (default: $NONMEMBERSHIP_BUILD_DIR or ./build)",
)
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False),
    help="Deployment config directory (default: $NONMEMBERSHIP_CONFIG_DIR or ./config)",
)
@click.option(
    "--circuit",
    type=click.Path(dir_okay=False),
    help="Circuit source (default: circuits/non_membership.circom)",
)
@click.option(
    "--toolchain",
    type=click.Choice(["snarkjs", "fixture"]),
    help="External toolchain (default: $NONMEMBERSHIP_TOOLCHAIN or snarkjs)",
)
@click.option(
    "--hash",
    "hash_provider",
    type=click.Choice(["sha256", "poseidon"]),
    help=(
        "Tree hash (default: $NONMEMBERSHIP_HASH_PROVIDER, else poseidon "
        "with snarkjs, sha256 with fixture)"
    ),
)
@click.option(
    "--profile",
    type=click.Choice(sorted(DEPLOYMENT_PROFILES)),
    default="local",
    help="Deployment profile (default: local)",
)
@click.option("--source-account", help="Stellar identity that signs invocations")
@click.option("--verbose", "-v", is_flag=True, help="Log every external command")
@click.pass_context
def main(
    ctx,
    build_dir,
    config_dir,
    circuit,
    toolchain,
    hash_provider,
    profile,
    source_account,
    verbose,
):
    """
    Non-membership ZK registry

    Proves that a candidate description is absent from a committed registry
    and submits the Groth16 proof to the on-chain verifier.

    ⚠️  EXPERIMENTAL - NOT AUDITED
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )
    try:
        ctx.obj = PipelineSettings.resolve(
            build_dir=build_dir,
            config_dir=config_dir,
            hash_provider=hash_provider,
            toolchain=toolchain,
            circuit_path=circuit,
            deployment_profile=profile,
            source_account=source_account,
        )
    except ValueError as e:
        _fail(str(e))


@main.command("compile")
@click.pass_obj
@reports_errors
def compile_circuit(settings):
    """Compile the circuit to r1cs and wasm."""
    circuit = _pipeline(settings).compile()
    _ok("Circuit compiled")
    click.echo(f"  r1cs: {circuit.r1cs_path}")
    click.echo(f"  wasm: {circuit.wasm_path}")
    if circuit.constraints is not None:
        click.echo(f"  constraints: {circuit.constraints}")


@main.command()
@click.pass_obj
@reports_errors
def setup(settings):
    """Run the Groth16 trusted setup (one-time)."""
    click.echo("Running trusted setup, this can take several minutes...")
    keys = _pipeline(settings).setup()
    _ok("Trusted setup complete")
    click.echo(f"  proving key: {keys.proving_key_path}")
    click.echo(f"  verification key: {keys.verification_key_path}")


@main.command()
@click.argument("description")
@registry_option
@levels_option
@node_cwd_option
@click.pass_obj
@reports_errors
def generate(settings, description, registry, levels, node_cwd):
    """Build the witness for DESCRIPTION and generate the proof."""
    if settings.toolchain == "snarkjs" and settings.hash_provider != "poseidon":
        click.echo(
            click.style(
                "⚠️  The circuit hashes with Poseidon; a sha256 tree will not satisfy it",
                fg="yellow",
            )
        )
    pipeline = _pipeline(settings)
    snapshot = _snapshot(settings, registry, levels)
    with open_hash_provider(settings.hash_provider, node_cwd=node_cwd) as hasher:
        tree = snapshot.build_tree(hasher)
        artifact = pipeline.generate(tree, description)

    _ok("Proof generated")
    click.echo(f"  root: {artifact.root}")
    click.echo(f"  candidate hash: {artifact.candidate_hash}")
    click.echo(f"  isNonMember: {artifact.is_non_member}")


@main.command()
@click.pass_obj
@reports_errors
def verify(settings):
    """Verify the proof against the local verification key."""
    _pipeline(settings).verify()
    _ok("Proof verified locally")


@main.command()
@click.pass_obj
@reports_errors
def submit(settings):
    """Submit the proof to the on-chain verifier."""
    record = _pipeline(settings).submit()
    click.echo(f"  contract: {record.contract_id}")
    click.echo(f"  agent hash: {record.agent_hash}")
    if not record.verified:
        _fail("On-chain verification returned false (submission record saved)")
    _ok("Proof verified on-chain")


@main.command()
@click.pass_obj
@reports_errors
def register(settings):
    """Register the verified candidate in the on-chain registry."""
    receipt = _pipeline(settings).register()
    _ok("Candidate registered")
    click.echo(f"  new root: {receipt.new_root}")


@main.command()
@click.argument("description")
@registry_option
@levels_option
@node_cwd_option
@click.option(
    "--local-only",
    is_flag=True,
    help="Stop after local verification (no chain interaction)",
)
@click.pass_obj
@reports_errors
def run(settings, description, registry, levels, node_cwd, local_only):
    """Run every stage for DESCRIPTION, reusing compiled circuit and keys."""
    through = Stage.LOCALLY_VERIFIED if local_only else Stage.REGISTERED
    pipeline = _pipeline(settings)
    snapshot = _snapshot(settings, registry, levels)
    with open_hash_provider(settings.hash_provider, node_cwd=node_cwd) as hasher:
        tree = snapshot.build_tree(hasher)
        results = pipeline.run(tree, description, through=through)

    for stage in STAGE_ORDER:
        if stage in results:
            _ok(stage.label)
    if through is Stage.REGISTERED:
        click.echo(f"  new root: {results[Stage.REGISTERED].new_root}")


@main.command()
@click.pass_obj
def status(settings):
    """Show which stage artifacts exist and what to run next."""
    pipeline = _pipeline(settings)
    table = Table(title=f"Artifacts in {settings.build_dir}")
    table.add_column("Stage")
    table.add_column("Artifact")
    table.add_column("Present", justify="center")
    table.add_column("Produced by")
    for stage, present in pipeline.status():
        table.add_row(
            stage.value,
            stage.label,
            "[green]✓[/green]" if present else "[red]✗[/red]",
            stage.command,
        )
    Console().print(table)

    try:
        deployment = pipeline.store.load_deployment()
    except PipelineError as e:
        click.echo(click.style(f"⚠️  {e}", fg="yellow"))
        deployment = None
    if deployment is None:
        click.echo(f"Deployment ({settings.deployment_profile}): not configured")
    else:
        click.echo(
            f"Deployment ({settings.deployment_profile}): "
            f"{deployment.contract_id} on {deployment.network}"
        )

    next_stage = pipeline.next_stage()
    if next_stage is None:
        _ok("All stages complete")
    else:
        click.echo(f"Next: {next_stage.command}")


@main.command()
@registry_option
@levels_option
@node_cwd_option
@click.option("--width", type=int, default=4, help="Nodes shown per layer")
@click.pass_obj
@reports_errors
def tree(settings, registry, levels, node_cwd, width):
    """Print the registry tree root and the first nodes of each layer."""
    snapshot = _snapshot(settings, registry, levels)
    with open_hash_provider(settings.hash_provider, node_cwd=node_cwd) as hasher:
        merkle: MerkleTree = snapshot.build_tree(hasher)

    click.echo(click.style("Registry tree", fg="cyan", bold=True))
    click.echo(f"  hash: {settings.hash_provider}")
    click.echo(f"  levels: {merkle.levels} ({merkle.capacity} slots)")
    click.echo(f"  occupied: {len(snapshot.descriptions)}")
    click.echo(f"  root: {merkle.root}")
    click.echo(f"  root (hex): {to_hex32(merkle.root)}")
    for depth, layer in enumerate(merkle.layers):
        shown = " ".join(_short(node) for node in layer[:width])
        more = f" (+{len(layer) - width})" if len(layer) > width else ""
        click.echo(f"  L{depth}: {shown}{more}")


@main.command("configure-deployment")
@click.option("--contract-id", required=True, help="Deployed verifier contract id")
@click.option("--network", required=True, help="Network name, e.g. testnet")
@click.option("--rpc-url", required=True, help="RPC endpoint")
@click.pass_obj
@reports_errors
def configure_deployment(settings, contract_id, network, rpc_url):
    """Record the deployed verifier (written once, never modified)."""
    config = DeploymentConfig(
        contract_id=contract_id,
        network=network,
        rpc_url=rpc_url,
        deployed_at=utc_timestamp(),
    )
    store = settings.make_store()
    store.save_deployment(config)
    _ok(f"Deployment config written to {store.deployment_path}")


@main.command()
def version():
    """Show version and disclaimer information."""
    click.echo(f"\nnonmembership-zk v{__version__}")
    print_disclaimer()


if __name__ == "__main__":
    main()
