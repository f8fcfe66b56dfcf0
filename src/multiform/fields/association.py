from multiform.exceptions import ConfigurationError, ValidationError
from multiform.fields.base import Field
from multiform.utils.reflection import id_field


class Reference(Field):
    """Foreign-key style field holding the identity of another entity.

    The value must cast to the target's identifier type. Whether the target
    actually exists is a question for the store, so that check is made by
    the provider during `validate`, not here.

    :param to_cls: The referenced entity class, or its class name.
    """

    default_error_messages = {
        "invalid": "is not a valid reference",
        "missing": "does not reference an existing {target}",
    }

    def __init__(self, to_cls, **kwargs):
        if not isinstance(to_cls, (str, type)):
            raise ConfigurationError(
                f"Reference target must be an entity class or its name, got `{to_cls!r}`"
            )

        self._to_cls = to_cls
        super().__init__(**kwargs)

    @property
    def to_cls(self):
        """Return the referenced entity class, resolving names lazily"""
        if isinstance(self._to_cls, str):
            from multiform.entity import entity_registry

            try:
                self._to_cls = entity_registry[self._to_cls]
            except KeyError:
                raise ConfigurationError(
                    f"Reference `{self.field_name}` points to unknown entity `{self._to_cls}`"
                )

        return self._to_cls

    def _cast_to_type(self, value):
        target_id_field = id_field(self.to_cls)
        if target_id_field is None:
            raise ConfigurationError(f"{self.to_cls.__name__} does not have an identity")

        try:
            return target_id_field._cast_to_type(value)
        except ValidationError:
            self.fail("invalid", value=value)

    def missing_message(self):
        """Message recorded when the referenced record cannot be found"""
        return self.error_messages["missing"].format(target=self.to_cls.__name__)

    def as_dict(self, value):
        return id_field(self.to_cls).as_dict(value)
