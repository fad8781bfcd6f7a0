"""
P1 FEM driver - solve a manufactured problem or run a convergence study.

Usage:
    python main.py
    python main.py mesh.N=32 A=2.0 problem=linear_example
    python main.py mesh=file mesh.path=meshing/unit_square.msh
    python main.py mode=convergence
    python main.py mlflow.enabled=true
"""

import contextlib
import logging
from pathlib import Path

import hydra
import mlflow
import numpy as np
from dotenv import load_dotenv
from hydra.core.hydra_config import HydraConfig
from omegaconf import DictConfig, OmegaConf

from poissonfem import (
    FEMError,
    Mesh2d,
    calculate_norm,
    l2_error,
    read_mesh,
    rectangle_mesh,
    solve,
)
from poissonfem.convergence import convergence_study
from poissonfem.plotting import (
    plot_convergence,
    plot_solution,
    save_figure,
    save_vtk,
    setup_style,
)
from poissonfem.problems import PROBLEMS

load_dotenv()

log = logging.getLogger(__name__)


def setup_mlflow(cfg: DictConfig) -> str:
    """Setup MLflow tracking and return experiment name."""
    tracking_uri = cfg.mlflow.get("tracking_uri", "./mlruns")
    mlflow.set_tracking_uri(tracking_uri)
    mlflow.set_experiment(cfg.experiment_name)
    return cfg.experiment_name


def create_mesh(cfg: DictConfig) -> Mesh2d:
    if cfg.mesh.type == "unit_square":
        return rectangle_mesh(
            x0=0.0, y0=0.0, L1=cfg.mesh.L, L2=cfg.mesh.L,
            noelms1=cfg.mesh.N, noelms2=cfg.mesh.N,
        )
    elif cfg.mesh.type == "file":
        return read_mesh(hydra.utils.to_absolute_path(cfg.mesh.path))
    else:
        raise ValueError(f"Unknown mesh type: {cfg.mesh.type}")


def run_solve(cfg: DictConfig, output_dir: Path) -> tuple[dict, list[Path]]:
    """Solve the configured problem. Returns (metrics, artifact paths)."""
    problem = PROBLEMS[cfg.problem](A=cfg.A)
    mesh, u = solve(
        create_mesh(cfg),
        problem.A,
        problem.f,
        problem.boundary_spec,
        dirichlet_conflict=cfg.dirichlet_conflict,
    )

    metrics = {
        "nonodes": mesh.nonodes,
        "noelms": mesh.noelms,
        "norm": calculate_norm(mesh, u),
        "l2_error": l2_error(mesh, u, problem.u_exact),
        "max_error": float(np.max(np.abs(u - problem.u_exact(mesh.VX, mesh.VY)))),
    }
    log.info(
        f"{problem.name}: ||u||={metrics['norm']:.6e}, "
        f"L2 error={metrics['l2_error']:.3e}, max error={metrics['max_error']:.3e}"
    )

    artifacts = []
    if cfg.output.plot:
        fig = plot_solution(mesh, u, title=f"{problem.name} (A={problem.A:g})")
        artifacts.append(save_figure(fig, output_dir / "solution.png"))
    if cfg.output.vtk:
        artifacts.append(save_vtk(mesh, u, output_dir / "solution.vtu"))
    return metrics, artifacts


def run_convergence(cfg: DictConfig, output_dir: Path) -> tuple[dict, list[Path]]:
    """Convergence study of the configured problem on refined unit squares."""
    problem = PROBLEMS[cfg.problem](A=cfg.A)
    df = convergence_study(problem, element_counts=list(cfg.convergence.element_counts))
    log.info(f"Convergence study:\n{df.to_string(index=False)}")

    table = output_dir / "convergence.csv"
    df.to_csv(table, index=False)
    artifacts = [table]
    if cfg.output.plot:
        artifacts.append(save_figure(plot_convergence(df), output_dir / "convergence.png"))

    metrics = {
        "final_l2_error": float(df["l2_error"].iloc[-1]),
        "final_l2_rate": float(df["l2_rate"].iloc[-1]),
        "final_max_rate": float(df["max_rate"].iloc[-1]),
    }
    return metrics, artifacts


@hydra.main(config_path="conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    log.info(f"Mode: {cfg.mode}, problem: {cfg.problem}, A={cfg.A}")
    setup_style()
    output_dir = Path(HydraConfig.get().runtime.output_dir)

    run = contextlib.nullcontext()
    if cfg.mlflow.enabled:
        log.info(f"MLflow experiment: {setup_mlflow(cfg)}")
        run = mlflow.start_run(run_name=f"{cfg.mode}_{cfg.problem}")

    with run:
        if cfg.mlflow.enabled:
            mlflow.log_params({"problem": cfg.problem, "A": cfg.A, "mesh": cfg.mesh.type})
            mlflow.log_dict(OmegaConf.to_container(cfg), "config.yaml")

        try:
            if cfg.mode == "solve":
                metrics, artifacts = run_solve(cfg, output_dir)
            elif cfg.mode == "convergence":
                metrics, artifacts = run_convergence(cfg, output_dir)
            else:
                raise ValueError(f"Unknown mode: {cfg.mode}")
        except FEMError as exc:
            log.error(f"{type(exc).__name__}: {exc}")
            raise

        if cfg.mlflow.enabled:
            mlflow.log_metrics(metrics)
            for path in artifacts:
                mlflow.log_artifact(str(path))


if __name__ == "__main__":
    main()
