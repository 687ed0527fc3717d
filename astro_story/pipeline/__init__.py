"""Story generation pipeline.

Builds a prompt for one story step, calls the text gateway, repairs and
normalises the JSON reply:

  arc mode     contract resolution on arc 1, stage directive by arc position,
               condensed story-so-far (summary + last 4 segments), two options.
               Failures degrade to a fixed default arc.
  finale mode  resolution plus human and astrological interpretation.
               Failures propagate (StoryGenerationError or the gateway error).

Custom options turn a free-text answer into a HistoryStoryOption. The planet
dialogue is generated from the chart and has no canned fallback.
"""

from .context import (  # noqa: F401
    MAX_VERBATIM_SEGMENTS,
    STAGES,
    SUMMARY_LIMIT,
    StoryStage,
    fold_segments,
    stage_for_arc,
)
from .core import (  # noqa: F401
    GenerationSettings,
    StoryRequest,
    generate_chunk,
    generate_custom_option,
)
from .dialogue import (  # noqa: F401
    MIN_DIALOGUE_LINES,
    DialogueLine,
    generate_planet_dialogue,
    normalize_dialogue,
)
from .normalize import (  # noqa: F401
    FALLBACK_OPTIONS,
    StoryGenerationError,
    sanitize_option,
)
