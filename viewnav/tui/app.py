from __future__ import annotations

import argparse
import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.message import Message
from textual.screen import ModalScreen
from textual.timer import Timer
from textual.widgets import Footer, Header, Static

from viewnav_dnd import AutoscrollParams, Position, Rect, RowBounds, autoscroll_velocity, hit_test_insertion

from viewnav.api_client import HttpNavigationBackend
from viewnav.config import Config
from viewnav.drag_session import DragSnapshot
from viewnav.groups import DeletionMode, NavRow
from viewnav.models import EntityKind, NavigationModel
from viewnav.navigation import NavigationController
from viewnav.persistence import SaveOutcome
from viewnav.service import NavigationBackend, demo_backend

LOG = logging.getLogger(__name__)

RowKey = Tuple[EntityKind, str]


def row_widget_id(kind: EntityKind, entity_id: str) -> str:
    """DOM id for a row; ids are restricted to letters, digits, ``_`` and ``-``."""
    return f"{kind.value}-{re.sub(r'[^A-Za-z0-9_-]', '_', entity_id)}"


def region_rect(widget) -> Rect:
    region = widget.region
    return Rect(region.x, region.y, region.width, region.height)


class PanelRow(Static):
    """One group header or view row. Forwards pointer gestures to the app."""

    can_focus = True

    BINDINGS = [
        Binding("enter", "toggle", "Expand/collapse", show=False),
        Binding("space", "toggle", "Expand/collapse", show=False),
    ]

    class DragStarted(Message):
        def __init__(self, row: "PanelRow"):
            super().__init__()
            self.row = row

    class Hovered(Message):
        def __init__(self, row: "PanelRow", x: int, y: int):
            super().__init__()
            self.row = row
            self.x = x
            self.y = y

    class Left(Message):
        def __init__(self, row: "PanelRow", x: int, y: int):
            super().__init__()
            self.row = row
            self.x = x
            self.y = y

    class Dropped(Message):
        def __init__(self, row: "PanelRow", x: int, y: int):
            super().__init__()
            self.row = row
            self.x = x
            self.y = y

    class ToggleRequested(Message):
        def __init__(self, row: "PanelRow"):
            super().__init__()
            self.row = row

    class Selected(Message):
        def __init__(self, row: "PanelRow"):
            super().__init__()
            self.row = row

    def __init__(self, nav_row: NavRow, **kwargs):
        classes = "group-row" if nav_row.kind is EntityKind.GROUP else "item-row"
        super().__init__(self._render_label(nav_row), id=row_widget_id(nav_row.kind, nav_row.id), classes=classes, **kwargs)
        self.nav_row = nav_row

    @property
    def key(self) -> RowKey:
        return (self.nav_row.kind, self.nav_row.id)

    @staticmethod
    def _render_label(nav_row: NavRow) -> str:
        if nav_row.kind is EntityKind.GROUP:
            marker = "▾" if nav_row.expanded else "▸"
            return f"{marker} [b]{nav_row.label}[/b]"
        return f"    {nav_row.label}"

    def action_toggle(self) -> None:
        if self.nav_row.kind is EntityKind.GROUP:
            self.post_message(self.ToggleRequested(self))

    def on_focus(self, event: events.Focus) -> None:
        self.post_message(self.Selected(self))

    def on_mouse_down(self, event: events.MouseDown) -> None:
        if event.button != 1:
            return
        event.stop()
        self.focus()
        self.post_message(self.DragStarted(self))

    def on_mouse_move(self, event: events.MouseMove) -> None:
        event.stop()
        self.post_message(self.Hovered(self, event.screen_x, event.screen_y))

    def on_leave(self, event: events.Leave) -> None:
        position = self.app.mouse_position
        self.post_message(self.Left(self, position.x, position.y))

    def on_mouse_up(self, event: events.MouseUp) -> None:
        event.stop()
        self.post_message(self.Dropped(self, event.screen_x, event.screen_y))


class NavigationPanel(VerticalScroll):
    """Scrollable list of rows. Pointer moves over blank space are hit-tested."""

    class SlotHovered(Message):
        def __init__(self, row: PanelRow, position: Position, y: int):
            super().__init__()
            self.row = row
            self.position = position
            self.y = y

    class Released(Message):
        pass

    def rows(self) -> List[PanelRow]:
        return list(self.query(PanelRow))

    @property
    def horizontal(self) -> bool:
        return self.has_class("horizontal")

    def on_mouse_move(self, event: events.MouseMove) -> None:
        rows = {row.id: row for row in self.rows()}
        if self.horizontal:
            # Rows share a top edge; hit-test along x instead
            bounds = [RowBounds(row_id, row.region.x, row.region.width) for row_id, row in rows.items()]
            hit = hit_test_insertion(bounds, event.screen_x)
        else:
            bounds = [RowBounds(row_id, row.region.y, row.region.height) for row_id, row in rows.items()]
            hit = hit_test_insertion(bounds, event.screen_y)
        if hit is None:
            return
        self.post_message(self.SlotHovered(rows[hit.key], hit.position, event.screen_y))

    def on_mouse_up(self, event: events.MouseUp) -> None:
        event.stop()
        self.post_message(self.Released())


class HelpScreen(ModalScreen[None]):
    """Modal overlay listing mouse and keyboard controls."""

    def compose(self) -> ComposeResult:
        lines = [
            "[b]viewnav navigation panel[/b]",
            "",
            "Mouse:",
            "  Drag a view       Reorder it, or move it into another group",
            "  Drag a group      Reorder groups",
            "  Upper/lower half  Drop before/after the row under the pointer",
            "",
            "Keys:",
            "  Enter / Space     Expand or collapse the focused group",
            "  d                 Delete the focused group",
            "  r / F5            Reload from the service",
            "  Esc               Cancel the current drag",
            "  q or Ctrl+C       Quit",
            "",
            "Press Esc, q, or ? to close this help.",
        ]
        yield Static("\n".join(lines), id="help-panel")

    def on_key(self, event: events.Key) -> None:
        if event.key in {"escape", "q", "?"}:
            event.stop()
            self.dismiss()


class DeleteGroupScreen(ModalScreen[Optional[DeletionMode]]):
    """Asks whether a group's views move to the default group or go with it."""

    def __init__(self, group_name: str, default_group_name: Optional[str], **kwargs):
        super().__init__(**kwargs)
        self.group_name = group_name
        self.default_group_name = default_group_name

    def compose(self) -> ComposeResult:
        lines = [f"[b]Delete group {self.group_name}?[/b]", ""]
        if self.default_group_name:
            lines.append(f"  m    Move its views to {self.default_group_name}")
        lines.append("  x    Delete its views as well")
        lines.append("  Esc  Keep the group")
        yield Static("\n".join(lines), id="delete-panel")

    def on_key(self, event: events.Key) -> None:
        if event.key == "m" and self.default_group_name:
            event.stop()
            self.dismiss(DeletionMode.MERGE)
        elif event.key == "x":
            event.stop()
            self.dismiss(DeletionMode.DELETE_ITEMS)
        elif event.key in {"escape", "q"}:
            event.stop()
            self.dismiss(None)


class DetailsPanel(Static):
    """Shows information about the focused row."""

    def show_empty(self, message: str = "Select a group or view to see details.") -> None:
        self.update(message)

    def show_row(self, model: NavigationModel, nav_row: Optional[NavRow]) -> None:
        if nav_row is None:
            self.show_empty()
            return

        if nav_row.kind is EntityKind.GROUP:
            if not model.has_group(nav_row.id):
                self.show_empty()
                return
            group = model.group(nav_row.id)
            lines = [
                f"[b]Group[/b]     {group.name or group.id}",
                f"[b]Id[/b]        {group.id}",
                f"[b]Position[/b]  {group.order_index + 1} of {len(model.groups)}",
                f"[b]Views[/b]     {len(group.item_ids)}",
            ]
            if group.is_default:
                lines.append("[b]Default[/b]   yes")
        else:
            item = model.items.get(nav_row.id)
            if item is None:
                self.show_empty()
                return
            group = model.group_of(item.id)
            lines = [
                f"[b]View[/b]      {item.name or item.id}",
                f"[b]Id[/b]        {item.id}",
                f"[b]Group[/b]     {group.name or group.id}",
                f"[b]Position[/b]  {group.item_ids.index(item.id) + 1} of {len(group.item_ids)}",
            ]
        self.update("\n".join(lines))


class StatusBar(Static):
    """Single-line status indicator."""

    def set_message(self, message: str, *, error: bool = False) -> None:
        self.set_class(error, "error")
        self.update(message or "")


class ViewNavTuiApp(App[None]):
    """Textual navigation panel with drag-and-drop reordering."""

    TITLE = "viewnav"
    CSS = """
    Screen {
        layout: vertical;
    }

    HelpScreen, DeleteGroupScreen {
        align: center middle;
    }

    #body {
        height: 1fr;
        padding: 1 2;
    }

    #list-panel, #details-panel {
        height: 1fr;
    }

    #details-panel {
        margin-left: 2;
        border: round $secondary;
        padding: 1;
    }

    #nav-panel {
        height: 1fr;
    }

    #nav-panel.horizontal {
        layout: horizontal;
        overflow-x: auto;
    }

    #nav-panel.horizontal PanelRow {
        width: 20;
    }

    PanelRow {
        height: 2;
        padding: 0 1;
    }

    PanelRow:focus {
        background: $boost;
    }

    PanelRow.dragging {
        text-style: dim italic;
    }

    PanelRow.drop-before {
        border-top: heavy $accent;
    }

    PanelRow.drop-after {
        border-bottom: heavy $accent;
    }

    PanelRow.drop-into {
        background: $accent 30%;
    }

    #status {
        height: 3;
        content-align: left middle;
        padding: 0 1;
        background: $boost;
    }

    #status.error {
        background: $error;
        color: $text;
    }

    .panel-title {
        text-style: bold;
        padding-bottom: 1;
    }

    #help-panel, #delete-panel {
        width: 70%;
        height: auto;
        background: $surface;
        border: round $secondary;
        padding: 2;
        content-align: left top;
    }
    """

    BINDINGS = [
        Binding("q", "quit_app", "Quit"),
        Binding("ctrl+c", "quit_app", "Quit", show=False),
        Binding("r", "reload", "Reload"),
        Binding("f5", "reload", "Reload", show=False),
        Binding("d", "delete_group", "Delete group"),
        Binding("escape", "cancel_drag", "Cancel drag", show=False),
        Binding("?", "show_help", "Help"),
    ]

    def __init__(
        self,
        *,
        backend: Optional[NavigationBackend] = None,
        owner_id: Optional[str] = None,
        config: Optional[Config] = None,
        orientation: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.config = config or Config()
        self.backend = backend or HttpNavigationBackend.from_config(self.config)
        self.owner_id = owner_id or self.config.get_setting("navigation.owner_id", "") or "demo"
        self.orientation = orientation or self.config.get_orientation()
        self.controller = NavigationController(self.backend, self.owner_id, orientation=self.orientation)
        self.controller.connect_model_changed(self._on_model_changed)
        self.controller.connect_warning(self._on_warning)
        self.controller.session.connect(self._on_drag_changed)

        self.row_widgets: Dict[RowKey, PanelRow] = {}
        self._selected_key: Optional[RowKey] = None
        self._status_timer: Optional[Timer] = None

    # --------------------------------------------------------------------- UI
    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="body"):
            with Vertical(id="list-panel"):
                yield Static("Navigation", classes="panel-title")
                yield NavigationPanel(id="nav-panel", classes=self.orientation)
            with Vertical(id="details-panel"):
                yield Static("Details", classes="panel-title")
                yield DetailsPanel(id="details")
        yield Footer()
        yield StatusBar(id="status")

    async def on_mount(self) -> None:
        self.status_bar = self.query_one(StatusBar)
        self.details_panel = self.query_one(DetailsPanel)
        self.nav_panel = self.query_one(NavigationPanel)
        self.details_panel.show_empty()
        await self._load(initial=True)

    async def on_unmount(self) -> None:
        closer = getattr(self.backend, "aclose", None)
        if callable(closer):
            await closer()

    # ---------------------------------------------------------------- bindings
    def action_quit_app(self) -> None:
        self.exit()

    async def action_reload(self) -> None:
        await self._load(initial=False)

    def action_cancel_drag(self) -> None:
        if self.controller.session.is_active:
            self.controller.cancel_drag()
            self.set_status("Drag cancelled")

    def action_show_help(self) -> None:
        self.push_screen(HelpScreen())

    def action_delete_group(self) -> None:
        key = self._selected_key
        if key is None:
            self.set_status("No group selected", error=True)
            return
        kind, entity_id = key
        model = self.controller.model
        group = model.group(entity_id) if kind is EntityKind.GROUP else model.group_of(entity_id)
        if group.is_default:
            self.set_status("The default group cannot be deleted", error=True)
            return
        try:
            default = model.default_group()
            default_name: Optional[str] = default.name or default.id
        except LookupError:
            default_name = None

        def _on_choice(mode: Optional[DeletionMode]) -> None:
            if mode is None:
                return
            self.run_worker(self._delete_group(group.id, mode), group="persistence")

        self.push_screen(DeleteGroupScreen(group.name or group.id, default_name), _on_choice)

    # ----------------------------------------------------------------- events
    def on_panel_row_selected(self, message: PanelRow.Selected) -> None:
        self._selected_key = message.row.key
        self.details_panel.show_row(self.controller.model, message.row.nav_row)

    def on_panel_row_toggle_requested(self, message: PanelRow.ToggleRequested) -> None:
        message.stop()
        self.run_worker(self.controller.toggle_group(message.row.nav_row.id), group="preferences")

    def on_panel_row_drag_started(self, message: PanelRow.DragStarted) -> None:
        message.stop()
        if self.controller.session.is_active:
            self.controller.cancel_drag()
        kind, entity_id = message.row.key
        try:
            self.controller.begin_drag(kind, entity_id)
        except LookupError:
            LOG.debug("Row %s vanished before the drag started", entity_id, exc_info=True)

    def on_panel_row_hovered(self, message: PanelRow.Hovered) -> None:
        message.stop()
        if not self.controller.session.is_active:
            return
        row = message.row
        self.controller.drag_over(row.nav_row.kind, row.nav_row.id, message.x, message.y, region_rect(row))
        self._autoscroll(message.y)

    def on_panel_row_left(self, message: PanelRow.Left) -> None:
        message.stop()
        row = message.row
        self.controller.drag_leave(row.nav_row.kind, row.nav_row.id, message.x, message.y, region_rect(row))

    def on_panel_row_dropped(self, message: PanelRow.Dropped) -> None:
        message.stop()
        if not self.controller.session.is_active:
            return
        row = message.row
        self.controller.drag_over(row.nav_row.kind, row.nav_row.id, message.x, message.y, region_rect(row))
        self.run_worker(self._finish_drop(), group="persistence")

    def on_navigation_panel_slot_hovered(self, message: NavigationPanel.SlotHovered) -> None:
        message.stop()
        if not self.controller.session.is_active:
            return
        row = message.row
        self.controller.drag_over_slot(row.nav_row.kind, row.nav_row.id, message.position)
        self._autoscroll(message.y)

    def on_navigation_panel_released(self, message: NavigationPanel.Released) -> None:
        message.stop()
        if self.controller.session.is_active:
            self.run_worker(self._finish_drop(), group="persistence")

    def on_mouse_up(self, event: events.MouseUp) -> None:
        # Released outside the panel
        if self.controller.session.is_active:
            self.controller.cancel_drag()

    # ----------------------------------------------------------------- listeners
    def _on_model_changed(self, model: NavigationModel) -> None:
        self.call_later(self.refresh_rows)

    def _on_warning(self, message: str) -> None:
        self.set_status(message, error=True)

    def _on_drag_changed(self, snapshot: DragSnapshot) -> None:
        dragged = (snapshot.dragged.kind, snapshot.dragged.id) if snapshot.is_active else None
        hover = snapshot.hover if snapshot.is_active else None
        for key, widget in self.row_widgets.items():
            widget.set_class(key == dragged, "dragging")
            on_target = hover is not None and key == (hover.kind, hover.id)
            into = on_target and dragged is not None and dragged[0] is EntityKind.ITEM and hover.kind is EntityKind.GROUP
            widget.set_class(on_target and not into and hover.position == "before", "drop-before")
            widget.set_class(on_target and not into and hover.position == "after", "drop-after")
            widget.set_class(into, "drop-into")

    # ----------------------------------------------------------------- data ops
    async def _load(self, *, initial: bool) -> None:
        self.set_status("Loading navigation…")
        try:
            if initial:
                await self.controller.mount()
            else:
                await self.controller.refresh()
        except Exception as exc:
            LOG.exception("Failed to load navigation")
            self.set_status(f"Unable to load navigation: {exc}", error=True, persist=True)
            return
        await self.refresh_rows()
        model = self.controller.model
        self.set_status(f"Loaded {len(model.groups)} group(s), {len(model.items)} view(s)")

    async def refresh_rows(self) -> None:
        model = self.controller.model
        rows = self.controller.group_manager.visible_rows(model)
        await self.nav_panel.remove_children()
        widgets = [PanelRow(nav_row) for nav_row in rows]
        self.row_widgets = {widget.key: widget for widget in widgets}
        if widgets:
            await self.nav_panel.mount_all(widgets)

        selected = self.row_widgets.get(self._selected_key) if self._selected_key else None
        if selected is not None:
            selected.focus()
            self.details_panel.show_row(model, selected.nav_row)
        elif not widgets:
            self.details_panel.show_empty("No groups available")
        self._on_drag_changed(self.controller.session.snapshot)

    async def _finish_drop(self) -> None:
        try:
            outcome = await self.controller.drop()
        except LookupError:
            # Dropped on a row that a refresh removed in the meantime
            LOG.exception("Drop target is no longer part of the navigation")
            self.set_status("That row no longer exists", error=True)
            return
        LOG.debug("Drop finished: %s", outcome.value)
        if outcome is SaveOutcome.SAVED:
            self.set_status("Order saved")

    async def _delete_group(self, group_id: str, mode: DeletionMode) -> None:
        outcome = await self.controller.delete_group(group_id, mode)
        if outcome is SaveOutcome.SAVED:
            if self._selected_key == (EntityKind.GROUP, group_id):
                self._selected_key = None
            self.set_status("Group deleted")

    def _autoscroll(self, screen_y: int) -> None:
        region = self.nav_panel.region
        velocity = autoscroll_velocity(
            AutoscrollParams(
                viewport_height=region.height,
                pointer_y=screen_y - region.y,
                margin=self.config.get_setting("navigation.autoscroll.margin", 2),
                max_velocity=self.config.get_setting("navigation.autoscroll.max_velocity", 2.0),
            )
        )
        if velocity:
            self.nav_panel.scroll_relative(y=velocity, animate=False)

    # ----------------------------------------------------------------- status
    def set_status(self, message: str, *, error: bool = False, persist: bool = False) -> None:
        if not hasattr(self, "status_bar"):
            return
        if self._status_timer:
            self._status_timer.stop()
            self._status_timer = None
        self.status_bar.set_message(message, error=error)
        if not persist:
            timeout = self.config.get_setting("ui.status_timeout", 6)
            self._status_timer = self.set_timer(timeout, self._clear_status, name="status-clear")

    def _clear_status(self) -> None:
        self.status_bar.set_message("")
        self._status_timer = None


def parse_args(argv: Optional[Sequence[str]] = None):
    parser = argparse.ArgumentParser(description="viewnav navigation panel")
    parser.add_argument("--owner", help="Owner whose navigation is shown (default: navigation.owner_id)")
    parser.add_argument("--api-url", help="Base URL of the dashboard API (default: api.base_url)")
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Use an in-memory demo store instead of the dashboard API",
    )
    parser.add_argument(
        "--orientation",
        choices=("vertical", "horizontal"),
        help="Split rows on their horizontal or vertical centre line",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Python logging level (default: WARNING)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None):
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    config = Config()
    owner_id = args.owner or config.get_setting("navigation.owner_id", "")

    if args.offline:
        owner_id = owner_id or "demo"
        backend = demo_backend(owner_id)
    else:
        if not owner_id:
            LOG.error("No owner given; pass --owner or set navigation.owner_id")
            return 2
        backend = HttpNavigationBackend.from_config(config, base_url=args.api_url)

    app = ViewNavTuiApp(backend=backend, owner_id=owner_id, config=config, orientation=args.orientation)
    try:
        app.run()
    except KeyboardInterrupt:
        pass
    return 0


__all__ = ["main", "ViewNavTuiApp"]
