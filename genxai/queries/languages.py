from __future__ import annotations

import locale
import os

SUPPORTED_LANGUAGES: tuple[str, ...] = (
    "Afrikaans",
    "Akan",
    "Albanian",
    "Amharic",
    "Arabic",
    "Armenian",
    "Azerbaijani",
    "Basque",
    "Belarusian",
    "Bemba",
    "Bengali",
    "Bihari",
    "Bosnian",
    "Breton",
    "Bulgarian",
    "Cambodian",
    "Catalan",
    "Cherokee",
    "Chichewa",
    "Chinese (Simplified)",
    "Chinese (Traditional)",
    "Corsican",
    "Croatian",
    "Czech",
    "Danish",
    "Dutch",
    "English",
    "Esperanto",
    "Estonian",
    "Ewe",
    "Faroese",
    "Filipino",
    "Finnish",
    "French",
    "Frisian",
    "Ga",
    "Galician",
    "Georgian",
    "German",
    "Greek",
    "Guarani",
    "Gujarati",
    "Haitian Creole",
    "Hausa",
    "Hawaiian",
    "Hebrew",
    "Hindi",
    "Hungarian",
    "Icelandic",
    "Igbo",
    "Indonesian",
    "Interlingua",
    "Irish",
    "Italian",
    "Japanese",
    "Javanese",
    "Kannada",
    "Kazakh",
    "Kinyarwanda",
    "Kirundi",
    "Kongo",
    "Korean",
    "Krio (Sierra Leone)",
    "Kurdish",
    "Kurdish (Soranî)",
    "Kyrgyz",
    "Laothian",
    "Latin",
    "Latvian",
    "Lingala",
    "Lithuanian",
    "Lozi",
    "Luganda",
    "Luo",
    "Macedonian",
    "Malagasy",
    "Malay",
    "Malayalam",
    "Maltese",
    "Maori",
    "Marathi",
    "Mauritian Creole",
    "Moldavian",
    "Mongolian",
    "Montenegrin",
    "Nepali",
    "Nigerian Pidgin",
    "Northern Sotho",
    "Norwegian",
    "Norwegian (Nynorsk)",
    "Occitan",
    "Oriya",
    "Oromo",
    "Pashto",
    "Persian",
    "Polish",
    "Portuguese (Brazil)",
    "Portuguese (Portugal)",
    "Punjabi",
    "Quechua",
    "Romanian",
    "Romansh",
    "Runyakitara",
    "Russian",
    "Scots Gaelic",
    "Serbian",
    "Serbo-Croatian",
    "Sesotho",
    "Setswana",
    "Seychellois Creole",
    "Shona",
    "Sindhi",
    "Sinhalese",
    "Slovak",
    "Slovenian",
    "Somali",
    "Spanish",
    "Spanish (Latin American)",
    "Sundanese",
    "Swahili",
    "Swedish",
    "Tajik",
    "Tamil",
    "Tatar",
    "Telugu",
    "Thai",
    "Tigrinya",
    "Tonga",
    "Tshiluba",
    "Tumbuka",
    "Turkish",
    "Turkmen",
    "Twi",
    "Uighur",
    "Ukrainian",
    "Urdu",
    "Uzbek",
    "Vietnamese",
    "Welsh",
    "Wolof",
    "Xhosa",
    "Yiddish",
    "Yoruba",
    "Zulu",
)

_LOCALE_LANGUAGES = {
    "af": "Afrikaans",
    "ar": "Arabic",
    "bg": "Bulgarian",
    "cs": "Czech",
    "da": "Danish",
    "de": "German",
    "el": "Greek",
    "en": "English",
    "es": "Spanish",
    "fi": "Finnish",
    "fr": "French",
    "he": "Hebrew",
    "hi": "Hindi",
    "hu": "Hungarian",
    "id": "Indonesian",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "nl": "Dutch",
    "no": "Norwegian",
    "nb": "Norwegian",
    "pl": "Polish",
    "ro": "Romanian",
    "ru": "Russian",
    "sv": "Swedish",
    "th": "Thai",
    "tr": "Turkish",
    "uk": "Ukrainian",
    "vi": "Vietnamese",
    "zh": "Chinese (Simplified)",
}


def normalize_language(language: str) -> str | None:
    wanted = language.strip().lower()
    for name in SUPPORTED_LANGUAGES:
        if name.lower() == wanted:
            return name
    return None


def get_default_web_language() -> str:
    override = os.environ.get("GENXAI_DEFAULT_LANGUAGE", "").strip()
    if override and normalize_language(override):
        return normalize_language(override)
    code = locale.getlocale()[0] or os.environ.get("LANG", "")
    code = code.split(".")[0].lower()
    if code == "pt_br":
        return "Portuguese (Brazil)"
    if code.startswith("pt"):
        return "Portuguese (Portugal)"
    return _LOCALE_LANGUAGES.get(code[:2], "English")


def language_code(language: str) -> str | None:
    """Two-letter ISO 639-1 code for a supported language name, if known."""
    name = normalize_language(language)
    if name is None:
        return None
    if name.startswith("Portuguese"):
        return "pt"
    if name.startswith("Chinese"):
        return "zh"
    for code, known in _LOCALE_LANGUAGES.items():
        if known == name:
            return code
    return None
