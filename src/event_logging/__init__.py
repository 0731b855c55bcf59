import logging.config, os, uuid, datetime, yaml, structlog

# Run on every record, whether it comes from structlog or from a plain
# ``logging.getLogger(...).info(event, extra={...})`` call.
_SHARED_PROCESSORS = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def make_formatter(renderer="json"):
    """Build the ProcessorFormatter named by ``renderer`` ("json" or "console")."""
    renderers = {
        "json": structlog.processors.JSONRenderer,
        "console": lambda: structlog.dev.ConsoleRenderer(colors=False),
    }
    if renderer not in renderers:
        raise ValueError(f"unknown renderer {renderer!r}, expected one of {sorted(renderers)}")

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_SHARED_PROCESSORS + [structlog.stdlib.ExtraAdder()],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderers[renderer](),
        ],
    )


def init_logging(log_root=None, level=logging.INFO):
    # --- Pick a per-run folder ---
    run_id = f"{datetime.datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"
    if log_root is None:
        log_root = os.path.join(os.getcwd(), "logs")
    log_dir = os.path.join(log_root, run_id)
    os.makedirs(log_dir, exist_ok=True)

    # --- Load standard logging config from YAML ---
    config_path = os.path.join(os.path.dirname(__file__), "config.yaml")
    with open(config_path) as f:
        cfg = yaml.safe_load(f)

    # Replace placeholder path with the real run folder
    for handler in cfg["handlers"].values():
        if "filename" in handler:
            handler["filename"] = handler["filename"].replace(
                "logs/current_run", log_dir
            )
    level_name = logging.getLevelName(level)
    cfg["root"]["level"] = level_name
    for logger_cfg in cfg.get("loggers", {}).values():
        logger_cfg["level"] = level_name

    logging.config.dictConfig(cfg)

    # --- Configure structlog to hand event dicts to the formatters above ---
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_SHARED_PROCESSORS,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    return log_dir  # In case the caller wants the path
