"""Plugin system: the "broadcast to listeners" side of recognition output.

Drop a .py file in the plugins/ directory and the server loads it on startup.

Plugin interface:
    class MyPlugin(GesturePlugin):
        name = "my_plugin"
        events = ("recognition", "training")   # subscribe to a subset

        def on_recognition(self, event):
            print(f"Recognized: {event.name}")

        def on_training(self, event):
            print(f"Model ready, error {event.data['error']}")

Hooks: on_recognition, on_segment (any completed segment), on_phase (guided
recording moved on), on_training (a training run finished).

Or use the decorator API:
    plugin = GesturePlugin(name="simple")

    @plugin.handler("circle")
    def on_circle(event):
        print("Circle!")
"""

from __future__ import annotations

import importlib.util
import logging
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from imu_gestures.session import GestureEvent, GestureSession

logger = logging.getLogger("imu_gestures.plugins")

EVENT_TYPES = ("recognition", "segment", "phase", "training")


@dataclass
class PluginEvent:
    type: str  # one of EVENT_TYPES
    name: str  # recognized label, gesture id, phase number, ...
    data: dict = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class GesturePlugin:
    """Base class for plugins. Override the hooks you need."""

    name: str = "unnamed"
    version: str = "1.0.0"
    description: str = ""
    events: tuple[str, ...] = EVENT_TYPES

    def __init__(self, name: Optional[str] = None, **kwargs):
        if name:
            self.name = name
        self._handlers: dict[str, list[Callable]] = {}

    def on_recognition(self, event: PluginEvent):
        """Runs the decorator handlers for the label, then the "*" ones."""
        for handler in self._handlers.get(event.name, []) + self._handlers.get("*", []):
            try:
                handler(event)
            except Exception as e:
                logger.error("Plugin %s handler error: %s", self.name, e)

    def on_segment(self, event: PluginEvent):
        pass

    def on_phase(self, event: PluginEvent):
        pass

    def on_training(self, event: PluginEvent):
        pass

    def on_startup(self, context: dict):
        pass

    def on_shutdown(self):
        pass

    def handler(self, label: str = "*"):
        """Decorator registering a handler for one recognized label."""
        def decorator(fn: Callable):
            self._handlers.setdefault(label, []).append(fn)
            return fn
        return decorator


class PluginManager:
    """Loads plugins and routes session events to them.

    Usage:
        manager = PluginManager()
        manager.load_directory("plugins/")
        session = GestureSession(broadcast=manager.broadcast_sink)
        manager.attach(session)
        manager.startup({"session": session})
    """

    def __init__(self):
        self._plugins: dict[str, GesturePlugin] = {}

    def register(self, plugin: GesturePlugin):
        unknown = set(plugin.events) - set(EVENT_TYPES)
        if unknown:
            raise ValueError(f"Plugin {plugin.name} subscribes to unknown events: {sorted(unknown)}")
        if plugin.name in self._plugins:
            logger.warning("Plugin '%s' already registered, replacing", plugin.name)
        self._plugins[plugin.name] = plugin
        logger.info("Registered plugin: %s v%s (%s)", plugin.name, plugin.version, ", ".join(plugin.events))

    def unregister(self, name: str):
        plugin = self._plugins.pop(name, None)
        if plugin is not None:
            self._call(plugin, "on_shutdown")

    def load_directory(self, path: str | Path) -> int:
        """Load every .py file in a directory, skipping _private ones. Returns the count.

        A file provides either a module-level `plugin` instance or a
        GesturePlugin subclass.
        """
        path = Path(path)
        if not path.is_dir():
            logger.debug("Plugin directory %s does not exist", path)
            return 0

        loaded = 0
        for py_file in sorted(path.glob("*.py")):
            if py_file.name.startswith("_"):
                continue
            try:
                plugin = self._load_file(py_file)
            except Exception as e:
                logger.error("Failed to load plugin %s: %s", py_file.name, e)
                continue
            if plugin is None:
                logger.warning("No GesturePlugin found in %s", py_file.name)
                continue
            try:
                self.register(plugin)
            except ValueError as e:
                logger.error("Rejected plugin %s: %s", py_file.name, e)
                continue
            loaded += 1
        return loaded

    @staticmethod
    def _load_file(path: Path) -> Optional[GesturePlugin]:
        module_name = f"imu_gestures_plugin_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            return None

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)

        instance = getattr(module, "plugin", None)
        if isinstance(instance, GesturePlugin):
            return instance

        for value in vars(module).values():
            if isinstance(value, type) and issubclass(value, GesturePlugin) and value is not GesturePlugin:
                return value()
        return None

    # --- lifecycle ---

    def startup(self, context: dict):
        for plugin in self._plugins.values():
            self._call(plugin, "on_startup", context)

    def shutdown(self):
        for plugin in self._plugins.values():
            self._call(plugin, "on_shutdown")

    # --- events ---

    def dispatch(self, event_type: str, event: PluginEvent):
        """Send an event to the on_<event_type> hook of every subscribed plugin."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown plugin event type: {event_type}")
        for plugin in self._plugins.values():
            if event_type in plugin.events:
                self._call(plugin, f"on_{event_type}", event)

    def broadcast_sink(self, payload: dict):
        """Recognition sink: turns {label: True} into recognition events."""
        for label in payload:
            self.dispatch("recognition", PluginEvent(type="recognition", name=label, data=dict(payload)))

    def attach(self, session: GestureSession):
        """Forward a session's segments, phase prompts and finished trainings."""
        def on_gesture(event: GestureEvent):
            self.dispatch("segment", PluginEvent(
                type="segment",
                name=str(event.gesture_id),
                data={
                    "mode": event.mode.value,
                    "phase": event.phase,
                    "duration_ms": event.duration_ms,
                    "samples": len(event.features) // 3,
                    "recognized": event.recognition.label if event.recognition else None,
                },
            ))

        def on_status(header: str, text: str):
            if header.isdigit():
                self.dispatch("phase", PluginEvent(type="phase", name=header, data={"prompt": text}))
            elif header == "Done!" and session.last_training is not None:
                result = session.last_training
                self.dispatch("training", PluginEvent(type="training", name="done", data={
                    "error": result.error,
                    "iterations": result.iterations,
                    "examples": result.examples,
                    "elapsed_s": result.elapsed_s,
                }))

        session.on_gesture(on_gesture)
        session.on_status(on_status)

    def _call(self, plugin: GesturePlugin, method: str, *args):
        try:
            getattr(plugin, method)(*args)
        except Exception as e:
            logger.error("Plugin %s %s error: %s", plugin.name, method, e)

    @property
    def plugins(self) -> dict[str, GesturePlugin]:
        return dict(self._plugins)

    @property
    def plugin_names(self) -> list[str]:
        return list(self._plugins)
