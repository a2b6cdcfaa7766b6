# agents/persistence.py
"""
JSON persistence for learned agent state.

One file per agent kind under the store directory:
    {base_dir}/sarsa_agent.json
    {base_dir}/mcc_agent.json
The store only talks to agents through get_snapshot() / load_snapshot().
"""

import asyncio
import json
import logging
import os
import tempfile
from enum import Enum
from pathlib import Path

from agents.types import AgentSnapshot

logger = logging.getLogger(__name__)


class AgentKind(str, Enum):
    SARSA = "sarsa"
    MCC = "mcc"

    @property
    def filename(self):
        return f"{self.value}_agent.json"


def build_agent(kind, config=None, seed=None):
    """Fresh agent of the given kind, configured from a DDAConfig (defaults when None)."""
    from agents.episodic_agent import EpisodicAgent
    from agents.td_agent import TDAgent
    from utils.config import DDAConfig

    config = config or DDAConfig()
    if _kind_of(kind) is AgentKind.SARSA:
        return TDAgent.from_config(config.td, seed=seed)
    return EpisodicAgent.from_config(config.episodic, seed=seed)


def _kind_of(obj):
    if isinstance(obj, AgentKind):
        return obj
    kind = getattr(obj, "kind", obj)
    return AgentKind(kind)


class SnapshotStore:
    def __init__(self, base_dir):
        self.base_dir = Path(base_dir)

    def path_for(self, kind):
        return self.base_dir / _kind_of(kind).filename

    # --- sync API ---
    def save(self, kind, snapshot):
        path = self.path_for(kind)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(snapshot.to_dict(), indent=2)
            # write next to the target, then swap in atomically
            fd, tmp = tempfile.mkstemp(prefix=path.name, suffix=".tmp", dir=str(path.parent))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, path)
            except BaseException:
                if os.path.exists(tmp):
                    os.remove(tmp)
                raise
        except OSError as e:
            logger.error("[Persistence] failed to save %s agent: %s", _kind_of(kind).value, e)
            return False
        logger.info("[Persistence] saved %s agent to %s | entries=%d eps=%.3f",
                    _kind_of(kind).value, path, len(snapshot.entries), snapshot.epsilon)
        return True

    def load(self, kind):
        path = self.path_for(kind)
        if not path.exists():
            logger.info("[Persistence] no saved %s data - starting fresh", _kind_of(kind).value)
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            snapshot = AgentSnapshot.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("[Persistence] ignoring unreadable %s snapshot %s: %s",
                           _kind_of(kind).value, path, e)
            return None
        return snapshot

    def save_agent(self, agent):
        return self.save(agent, agent.get_snapshot())

    def load_into(self, agent, kind=None):
        """Hydrate `agent`; returns True when previous data was found."""
        snapshot = self.load(kind or agent)
        if snapshot is None:
            return False
        agent.load_snapshot(snapshot)
        return True

    def clear(self, kind=None):
        kinds = [_kind_of(kind)] if kind is not None else list(AgentKind)
        for k in kinds:
            path = self.path_for(k)
            try:
                path.unlink()
                logger.info("[Persistence] cleared %s", path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error("[Persistence] failed to clear %s: %s", path, e)

    def has_any_saved_data(self):
        return any(self.path_for(k).exists() for k in AgentKind)

    # --- awaitable API ---
    async def save_async(self, kind, snapshot):
        return await asyncio.to_thread(self.save, kind, snapshot)

    async def load_async(self, kind):
        return await asyncio.to_thread(self.load, kind)

    async def save_agent_async(self, agent):
        # snapshot taken on the caller's thread, only I/O goes to the worker
        return await self.save_async(agent, agent.get_snapshot())

    async def load_into_async(self, agent, kind=None):
        snapshot = await self.load_async(kind or agent)
        if snapshot is None:
            return False
        # only touch the agent once the read has completed
        agent.load_snapshot(snapshot)
        return True
