"""imu-gestures CLI.

Usage:
    imu-gestures serve       Start the HTTP/WebSocket server
    imu-gestures train       Train a model from a saved training set
    imu-gestures replay      Replay a recorded sensor stream through a session
    imu-gestures config      Write a default engine config file
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="imu-gestures",
    help="Record, train and recognize motion gestures from a 3-axis sensor.",
    add_completion=False,
)


def _load_config(path: Optional[str]):
    from imu_gestures.config import EngineConfig

    if path is None:
        return EngineConfig()
    if not Path(path).exists():
        typer.echo(f"❌ Config file not found: {path}", err=True)
        raise typer.Exit(1)
    return EngineConfig.from_yaml(path)


def _setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8765, help="Port"),
    config: Optional[str] = typer.Option(None, help="Path to engine config YAML"),
    model: Optional[str] = typer.Option(None, help="Path to trained model file"),
    forward_url: Optional[str] = typer.Option(None, "--forward", help="Webhook receiving recognitions"),
    log_level: str = typer.Option("info", help="Log level"),
):
    """Start the sensor/recognition server."""
    import uvicorn
    from imu_gestures.server import app as fastapi_app, configure

    _setup_logging(log_level)
    configure(config=_load_config(config), model_path=model, forward_url=forward_url)
    if model:
        typer.echo(f"📦 Loaded model: {model}")

    typer.echo(f"🚀 Starting imu-gestures server on {host}:{port}")
    uvicorn.run(fastapi_app, host=host, port=port, log_level=log_level)


@app.command()
def train(
    training_set: str = typer.Argument(..., help="Training set JSON saved by `replay --guided`"),
    output: str = typer.Option("model.pt", help="Output model path"),
    config: Optional[str] = typer.Option(None, help="Path to engine config YAML"),
    iterations: Optional[int] = typer.Option(None, help="Override the iteration budget"),
    seed: Optional[int] = typer.Option(None, help="Random seed"),
):
    """Train the sequence classifier from a saved training set."""
    from imu_gestures.classifier import LSTMSequenceClassifier, TrainingOptions
    from imu_gestures.training_set import TrainingSetStore

    path = Path(training_set)
    if not path.exists():
        typer.echo(f"❌ Training set not found: {training_set}", err=True)
        raise typer.Exit(1)

    cfg = _load_config(config)
    store = TrainingSetStore.load(path)
    if not len(store):
        typer.echo("❌ Training set is empty. Record some gestures first.", err=True)
        raise typer.Exit(1)

    typer.echo(f"📊 Training data: {len(store)} examples, mean length {store.mean_input_length:.0f} values")

    classifier = LSTMSequenceClassifier(hidden_size=cfg.hidden_size)
    options = TrainingOptions(
        rate=cfg.learning_rate,
        iterations=iterations or cfg.iterations,
        error=cfg.target_error,
        seed=seed,
    )
    try:
        result = classifier.train(store.examples, options).result()
        classifier.save_model(output)
    finally:
        classifier.close()

    typer.echo("\n✅ Training complete!")
    typer.echo(f"   Error: {result.error:.5f} after {result.iterations} iterations ({result.elapsed_s:.1f}s)")
    typer.echo(f"   Model saved to: {output}")


@app.command()
def replay(
    recording: str = typer.Argument(..., help="Recorded sensor stream (.json or .npz)"),
    model: Optional[str] = typer.Option(None, help="Trained model (listening replay)"),
    guided: bool = typer.Option(False, help="Run the guided recording protocol instead of listening"),
    label: str = typer.Option("gesture", help="Name reported for recognized gestures"),
    config: Optional[str] = typer.Option(None, help="Path to engine config YAML"),
    save_training_set: Optional[str] = typer.Option(None, help="Where to save examples from a guided replay"),
    save_model: Optional[str] = typer.Option(None, help="Where to save the model from a guided replay"),
):
    """Replay a recorded stream, either listening with a model or recording/training."""
    from imu_gestures.classifier import LSTMSequenceClassifier
    from imu_gestures.recorder import SamplePlayer
    from imu_gestures.scheduling import ManualScheduler
    from imu_gestures.session import GestureSession

    path = Path(recording)
    if not path.exists():
        typer.echo(f"❌ Recording not found: {recording}", err=True)
        raise typer.Exit(1)
    if not guided and not model:
        typer.echo("❌ Listening replay needs --model (or use --guided)", err=True)
        raise typer.Exit(1)

    cfg = _load_config(config)
    player = SamplePlayer.load(path)
    typer.echo(f"▶️  Replaying {path.name} ({player.event_count} events, {player.duration_ms / 1000:.1f}s)")

    scheduler = ManualScheduler()
    session = GestureSession(
        classifier=LSTMSequenceClassifier(hidden_size=cfg.hidden_size, model_path=model),
        config=cfg,
        scheduler=scheduler,
        broadcast=lambda payload: typer.echo(f"   🎯 Recognized: {payload}"),
    )
    session.catalog.add(label)

    with session:
        if guided:
            session.on_status(lambda header, text: typer.echo(f"   [{header}] {text}") if header.isdigit() else None)
            session.start_recording()
        else:
            session.start_listening()

        events = player.feed(session, scheduler=scheduler)
        typer.echo(f"\n   {len(events)} gesture segments")

        if guided:
            typer.echo(f"   {len(session.training_set)} training examples")
            if save_training_set:
                session.training_set.save(save_training_set)
                typer.echo(f"💾 Training set saved to: {save_training_set}")
            result = session.wait_for_training()
            if result is None:
                typer.echo("⚠️  No model trained (protocol incomplete or training failed)", err=True)
            else:
                typer.echo(f"✅ Trained: error {result.error:.5f} after {result.iterations} iterations")
                if save_model:
                    session.classifier.save_model(save_model)
                    typer.echo(f"💾 Model saved to: {save_model}")
        else:
            recognized = sum(1 for e in events if e.recognition is not None)
            typer.echo(f"✅ Replay complete. {recognized} recognized.")


@app.command("config")
def write_config(
    output: str = typer.Argument("imu_gestures.yml", help="Where to write the config"),
):
    """Write the default engine configuration to a YAML file."""
    from imu_gestures.config import EngineConfig

    EngineConfig().to_yaml(output)
    typer.echo(f"💾 Default config written to {output}")


def main():
    app()


if __name__ == "__main__":
    main()
