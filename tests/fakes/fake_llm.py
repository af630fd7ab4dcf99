"""Scripted OracleLLM replacement."""

from nexus_oracle.core.llm import ChatCompletion


class FakeLLM:
    """Returns queued outcomes in order; exceptions in the queue are raised.

    ``calls`` records (system_prompt, user_message, kwargs) for every call.
    """

    def __init__(self, *outcomes):
        self._outcomes = list(outcomes)
        self.calls = []

    async def complete_chat(self, system_prompt, user_message, **kwargs):
        self.calls.append((system_prompt, user_message, kwargs))
        if not self._outcomes:
            raise AssertionError("FakeLLM called more times than scripted")
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return ChatCompletion(text=outcome, model=kwargs.get("model", "fake-model"))
