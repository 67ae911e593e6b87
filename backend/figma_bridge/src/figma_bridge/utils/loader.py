import json
import logging
import os
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from ..config import settings
from ..models.collaborators import ComponentInfo, ComponentMap

logger = logging.getLogger(settings.SERVICE_NAME + ".loader")


class ComponentMapFileHandler(FileSystemEventHandler):
    """
    Watchdog event handler that detects changes to the component map file
    and triggers a reload callback.
    """

    def __init__(self, component_map_path: Path, reload_callback: Callable[[], bool]):
        self.component_map_path = component_map_path
        self.reload_callback = reload_callback
        logger.info(f"Watching for changes to component map file: {component_map_path}")

    def on_modified(self, event):
        if not event.is_directory and Path(event.src_path) == self.component_map_path:
            logger.info(f"Detected change to component map file: {event.src_path}")
            self.reload_callback()


class ComponentMapLoader:
    """
    Loads the component name -> library asset table and, optionally,
    hot-reloads it when the file changes on disk.
    """

    def __init__(
        self,
        component_map_path: Optional[Union[str, Path]] = None,
        enable_hot_reload: Optional[bool] = None,
    ):
        self.component_map_path = (
            Path(component_map_path).resolve()
            if component_map_path is not None
            else settings.get_absolute_component_map_path()
        )
        self.component_map: ComponentMap = ComponentMap()
        self.last_modified_time: float = 0
        self.observer: Optional[Observer] = None
        self.lock = threading.RLock()  # The watchdog thread reloads while the builder reads

        self.load_component_map()

        hot_reload = settings.ENABLE_HOT_RELOAD if enable_hot_reload is None else enable_hot_reload
        if hot_reload:
            self._setup_file_watcher()
        else:
            logger.debug("Hot reload is disabled. The component map will not be reloaded automatically.")

    def _setup_file_watcher(self):
        """Set up a watchdog observer on the directory holding the component map."""
        try:
            self.observer = Observer()
            handler = ComponentMapFileHandler(self.component_map_path, self.load_component_map)
            self.observer.schedule(handler, str(self.component_map_path.parent), recursive=False)
            self.observer.start()
            logger.info(f"File watcher started for {self.component_map_path}")
        except Exception as e:
            logger.error(f"Failed to set up file watcher: {e}", exc_info=True)
            self.observer = None

    def load_component_map(self) -> bool:
        """
        Load and validate the component map file.
        Returns True if the file was loaded (or is unchanged since the last load).
        On failure the previously loaded table is kept.
        """
        with self.lock:
            if not self.component_map_path.exists():
                logger.error(f"Component map file not found: {self.component_map_path}")
                return False

            current_mtime = os.path.getmtime(self.component_map_path)
            if current_mtime <= self.last_modified_time:
                logger.debug("Component map file has not changed since last load.")
                return True

            try:
                logger.info(f"Loading component map from {self.component_map_path}")
                with open(self.component_map_path, "r", encoding="utf-8") as f:
                    raw_data = json.load(f)
                self.component_map = ComponentMap(**raw_data)
            except json.JSONDecodeError as e:
                logger.error(f"Failed to parse component map file: {e}", exc_info=True)
                return False
            except (ValidationError, TypeError) as e:
                logger.error(f"Component map file has an invalid shape: {e}")
                return False

            self.last_modified_time = current_mtime
            configured = sum(1 for info in self.component_map.components.values() if info.is_configured)
            logger.info(
                f"Component map loaded: {len(self.component_map.components)} components, "
                f"{configured} with library keys"
            )
            return True

    def get_component_map(self) -> Dict[str, ComponentInfo]:
        """Snapshot of the current name -> ComponentInfo table."""
        with self.lock:
            return dict(self.component_map.components)

    def get_component_info(self, name: str) -> Optional[ComponentInfo]:
        with self.lock:
            return self.component_map.components.get(name)

    def supported_components(self) -> List[str]:
        with self.lock:
            return list(self.component_map.components)

    def stop_file_watcher(self):
        """Stop the file watcher if it's running."""
        if self.observer and self.observer.is_alive():
            logger.info("Stopping file watcher...")
            self.observer.stop()
            self.observer.join(timeout=2.0)
            logger.info("File watcher stopped.")

    def __del__(self):
        self.stop_file_watcher()


_loader_instance: Optional[ComponentMapLoader] = None


def get_component_map_loader() -> ComponentMapLoader:
    """
    Get the process-wide ComponentMapLoader.
    There is only one instance watching the file.
    """
    global _loader_instance
    if _loader_instance is None:
        _loader_instance = ComponentMapLoader()
    return _loader_instance


if __name__ == "__main__":
    loader = get_component_map_loader()
    for name, info in loader.get_component_map().items():
        status = "configured" if info.is_configured else "placeholder"
        print(f"  - {name}: {status} (text layers: {info.text_layers})")
