"""Built-in system health check actions backed by psutil."""

import asyncio

import psutil

from idleweaver.domain.models import ExecutionContext, TaskResult

GIB = 1024**3


async def check_disk_usage(ctx: ExecutionContext, path: str = "/") -> TaskResult:
    """Report disk usage of the root filesystem."""
    usage = await asyncio.to_thread(psutil.disk_usage, path)
    return TaskResult(
        task_id=ctx.task.id,
        success=True,
        output=f"Disk usage {path}: {usage.percent:.0f}% "
        f"({usage.used / GIB:.1f}G/{usage.total / GIB:.1f}G)",
        metrics={"disk_percent": usage.percent, "disk_free_bytes": usage.free},
    )


async def check_memory_usage(ctx: ExecutionContext) -> TaskResult:
    """Report virtual memory usage."""
    memory = psutil.virtual_memory()
    used = memory.total - memory.available
    return TaskResult(
        task_id=ctx.task.id,
        success=True,
        output=f"Memory usage: {used / GIB:.1f}G/{memory.total / GIB:.1f}G ({memory.percent:.0f}%)",
        metrics={"memory_percent": memory.percent, "memory_available_bytes": memory.available},
    )


async def check_network(ctx: ExecutionContext) -> TaskResult:
    """Succeed if at least one non-loopback interface is up."""
    stats = psutil.net_if_stats()
    up = sorted(name for name, s in stats.items() if s.isup and not name.startswith("lo"))
    if not up:
        return TaskResult(
            task_id=ctx.task.id,
            success=False,
            error="No network interface is up",
            metrics={"interfaces_up": 0},
        )
    return TaskResult(
        task_id=ctx.task.id,
        success=True,
        output=f"Network interfaces up: {', '.join(up)}",
        metrics={"interfaces_up": len(up)},
    )


async def system_summary(ctx: ExecutionContext) -> TaskResult:
    """One-line summary of disk, memory and load."""
    disk = psutil.disk_usage("/")
    memory = psutil.virtual_memory()
    load_1m, _, _ = psutil.getloadavg()
    return TaskResult(
        task_id=ctx.task.id,
        success=True,
        output=f"disk {disk.percent:.0f}% | memory {memory.percent:.0f}% | load {load_1m:.2f}",
        metrics={
            "disk_percent": disk.percent,
            "memory_percent": memory.percent,
            "load_1m": load_1m,
        },
    )
