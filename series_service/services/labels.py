from series_service.config.settings import settings


def label_for(entity, locale: str | None = None) -> str | None:
    """Display label of a reference entity: translation, then name, then identifier."""
    if entity is None:
        return None
    translations = entity.translations or {}
    locale = locale or settings.DEFAULT_LOCALE
    label = translations.get(locale)
    if label is None and "-" in locale:
        # en-GB falls back to en
        label = translations.get(locale.split("-", 1)[0])
    return label or entity.name or entity.identifier or str(entity.id)


def dataset_label(dataset, locale: str | None = None) -> str:
    phenomenon = label_for(dataset.phenomenon, locale)
    procedure = label_for(dataset.procedure, locale)
    feature = label_for(dataset.feature, locale)
    head = " ".join(p for p in (phenomenon, procedure) if p)
    if feature:
        return f"{head}, {feature}" if head else feature
    return head or str(dataset.id)
