"""Configuration loader for simulation, fitting and benchmarking defaults."""

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml

CONFIG_ENV_VAR = "DYNOCC_CONFIG"


@dataclass(frozen=True)
class SimulationConfig:
    """Reference simulation design and truth."""

    n_sites: int
    n_surveys: int
    n_seasons: int
    psi: float
    p: float
    gamma: float
    epsilon: float
    seed: int


@dataclass(frozen=True)
class MLEConfig:
    """BFGS settings for the maximum-likelihood fits."""

    n_starts: int
    start_jitter: float
    maxiter: int
    gtol: float


@dataclass(frozen=True)
class MCMCConfig:
    """NUTS settings."""

    num_warmup: int
    num_samples: int
    num_chains: int
    target_accept_prob: float


@dataclass(frozen=True)
class GibbsConfig:
    """Data-augmentation Gibbs settings."""

    num_warmup: int
    num_samples: int
    num_chains: int


@dataclass(frozen=True)
class BenchmarkConfig:
    """Replicated-simulation benchmark settings."""

    n_replicates: int
    methods: tuple[str, ...]


@dataclass(frozen=True)
class LoggingConfig:
    """Logging setup for the command-line entry points."""

    level: str
    format: str


@dataclass(frozen=True)
class DynoccConfig:
    """Full configuration."""

    simulation: SimulationConfig
    mle: MLEConfig
    mcmc: MCMCConfig
    gibbs: GibbsConfig
    benchmark: BenchmarkConfig
    logging: LoggingConfig

    def method_kwargs(self, method: str) -> dict:
        """Keyword arguments for dynocc.models.fit() with this method."""
        if method in ("hmm", "colext"):
            return {
                "n_starts": self.mle.n_starts,
                "start_jitter": self.mle.start_jitter,
                "maxiter": self.mle.maxiter,
                "gtol": self.mle.gtol,
            }
        if method == "nuts":
            return {
                "num_warmup": self.mcmc.num_warmup,
                "num_samples": self.mcmc.num_samples,
                "num_chains": self.mcmc.num_chains,
                "target_accept_prob": self.mcmc.target_accept_prob,
            }
        if method == "gibbs":
            return {
                "num_warmup": self.gibbs.num_warmup,
                "num_samples": self.gibbs.num_samples,
                "num_chains": self.gibbs.num_chains,
            }
        raise ValueError(f"Unknown inference method: {method!r}")


def _find_config_path() -> Path:
    """Find config.yaml from $DYNOCC_CONFIG or by walking up from this file."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        config_path = Path(override)
        if not config_path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file {config_path}")
        return config_path
    current = Path(__file__).resolve()
    for parent in current.parents:
        config_path = parent / "config.yaml"
        if config_path.exists():
            return config_path
    raise FileNotFoundError("config.yaml not found in any parent directory")


def parse_config(raw: dict) -> DynoccConfig:
    """Build a DynoccConfig from the parsed YAML mapping."""
    benchmark = dict(raw["benchmark"])
    benchmark["methods"] = tuple(benchmark["methods"])
    return DynoccConfig(
        simulation=SimulationConfig(**raw["simulation"]),
        mle=MLEConfig(**raw["mle"]),
        mcmc=MCMCConfig(**raw["mcmc"]),
        gibbs=GibbsConfig(**raw["gibbs"]),
        benchmark=BenchmarkConfig(**benchmark),
        logging=LoggingConfig(**raw["logging"]),
    )


@lru_cache(maxsize=1)
def load_config() -> DynoccConfig:
    """Load and parse the configuration.

    Returns cached config on subsequent calls.
    """
    config_path = _find_config_path()

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    return parse_config(raw)


def get_config() -> DynoccConfig:
    """Get the configuration."""
    return load_config()
