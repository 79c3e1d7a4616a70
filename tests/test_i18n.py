from samantha.services.i18n import Translations, available_languages, get_translations, next_language


def test_languages_cycle() -> None:
    assert available_languages() == ("en", "pt-br")
    assert next_language("en") == "pt-br"
    assert next_language("pt-br") == "en"
    assert next_language("fr") == "en"


def test_unknown_language_falls_back_to_english() -> None:
    assert get_translations("xx") is get_translations("en")
    assert get_translations("PT-BR").send_button == "Enviar"


def test_translations_round_trip_through_panel_payload() -> None:
    payload = get_translations("pt-br").to_dict()

    assert payload["sendButton"] == "Enviar"
    assert Translations.from_dict(payload) == get_translations("pt-br")
    assert Translations.from_dict({}) == get_translations("en")
