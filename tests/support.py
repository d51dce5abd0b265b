import json

from mathgen.core.config import Settings


class ScriptedGenerator:
    """Stands in for the language model: replays queued responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts = []

    def queue(self, *responses):
        self.responses.extend(responses)

    async def generate_text(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.responses:
            raise AssertionError("unexpected generation call")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


def fast_settings(database_url: str, **overrides) -> Settings:
    values = dict(
        database_url=database_url,
        generation_timeout=2.0,
        generation_retry_delay=0,
        db_retry_delay=0,
        log_level="WARNING",
    )
    values.update(overrides)
    return Settings(**values)


def sqlite_url(directory: str) -> str:
    return f"sqlite+aiosqlite:///{directory}/test.db"


def problem_json(
    problem_text="Mia has 12 apples and buys 3 more. How many apples does she have now?",
    final_answer=15,
    steps=("Start with 12 apples.", "Add the 3 new apples: 12 + 3 = 15.", "Final answer: 15"),
    fenced=True,
) -> str:
    payload = {"problem_text": problem_text, "final_answer": final_answer}
    if steps is not None:
        payload["steps"] = list(steps)
    body = json.dumps(payload, indent=2)
    return f"Here is your problem:\n```json\n{body}\n```" if fenced else body
