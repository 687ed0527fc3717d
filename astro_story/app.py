from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from astro_story.chart import chart_from_config
from astro_story.config import credentials_from_env, get_config, resolve_data_dir
from astro_story.contracts import ContractMemory
from astro_story.host import StoryHost
from astro_story.llm import TextGateway, build_gateway
from astro_story.models import AuthorStyle
from astro_story.pacing import DialoguePacer
from astro_story.pipeline import GenerationSettings
from astro_story.routes import router
from astro_story.session import SessionStateMachine
from astro_story.storage import HISTORY_FILE, JsonUsageHistoryStore


def build_host(data_dir: Path, gateway: TextGateway | None = None) -> StoryHost:
    """Assemble one story session from the config in data_dir."""
    config = get_config(data_dir)
    generation = config["generation"]
    history = config["history"]
    timings = config["timings"]
    gateway = gateway or build_gateway(generation)
    chart = chart_from_config(config)

    contracts = ContractMemory(
        gateway,
        JsonUsageHistoryStore(data_dir / HISTORY_FILE),
        chart,
        temperature=generation["contract_temperature"],
        max_tokens=generation["contract_max_tokens"],
        max_contracts=history["max_contracts"],
        max_scenarios=history["max_scenarios"],
        max_scenarios_per_contract=history["max_scenarios_per_contract"],
    )
    machine = SessionStateMachine(
        reveal_interval=timings["reveal_interval"],
        hide_delay=timings["hide_delay"],
    )
    return StoryHost(
        machine,
        gateway,
        contracts,
        chart=chart,
        credentials=credentials_from_env(config),
        author=AuthorStyle.model_validate(config["story"]["author"]),
        arc_limit=config["story"]["arc_limit"],
        settings=GenerationSettings.from_config(generation),
        timings=timings,
        pacer=DialoguePacer(timings["planet_paces"], scale=timings["dialogue_scale"]),
    )


def create_app(data_dir: Path | None = None, gateway: TextGateway | None = None) -> FastAPI:
    resolved = resolve_data_dir(data_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.host.teardown()

    app = FastAPI(title="Astro Story", lifespan=lifespan)
    app.state.data_dir = resolved
    app.state.host = build_host(resolved, gateway)
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
