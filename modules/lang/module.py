"""Language switching module.

Adds ``/lang``, which offers locale buttons, and a ``callback_query``
handler that applies the chosen locale. Expects a host context with
``reply(text, buttons=...)``, ``answer_callback_query(text)``, a
``callback_data`` attribute, and a writable ``locale``.
"""

from hookwire import BotModule, CommandDefinition, HandlerDefinition

LANG_CALLBACKS = {
    "lang:en": "en",
    "lang:ru": "ru",
}

_BUTTONS = [("English", "lang:en"), ("Русский", "lang:ru")]


async def handle_lang(ctx) -> None:
    await ctx.reply("Choose your language:", buttons=_BUTTONS)


async def handle_lang_callback(ctx) -> None:
    locale = LANG_CALLBACKS.get(getattr(ctx, "callback_data", None))
    if locale is None:
        return
    ctx.locale = locale
    await ctx.answer_callback_query(f"Language set to {locale}")


async def on_init(ctx) -> None:
    ctx.logger.info("lang_module_ready", default_locale=ctx.get_config("default_locale", "en"))


module = BotModule(
    name="lang",
    enabled=True,
    commands=[
        CommandDefinition(
            name="lang",
            description="Change language",
            handler=handle_lang,
        ),
    ],
    handlers=[
        HandlerDefinition(
            name="lang-callback",
            event="callback_query",
            handler=handle_lang_callback,
        ),
    ],
    on_init=on_init,
)
