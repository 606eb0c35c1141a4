from rcbuilding import UNITS, Quantity


class Units:
    """Units in which the magnitudes of the state-space matrices of a thermal
    model are expressed: temperature in K, time in s, energy in J.
    """
    unit_T = UNITS.Unit('K')
    unit_t = UNITS.Unit('s')
    unit_E = UNITS.Unit('J')
    unit_R = unit_T * unit_t / unit_E
    unit_C = unit_E / unit_T
    unit_Q = unit_E / unit_t
    unit_G = unit_Q / unit_T

    @classmethod
    def T(cls, value: Quantity | float) -> float:
        """Returns the magnitude of a temperature in `unit_T`. Plain numbers
        are returned unchanged.
        """
        if isinstance(value, Quantity):
            return value.to(cls.unit_T).m
        return value

    @classmethod
    def t(cls, value: Quantity | float) -> float:
        """Returns the magnitude of a time value in `unit_t`. Plain numbers
        are returned unchanged.
        """
        if isinstance(value, Quantity):
            return value.to(cls.unit_t).m
        return value

    @classmethod
    def Q(cls, value: Quantity | float) -> float:
        """Returns the magnitude of a heat flow in `unit_Q`. Plain numbers
        are returned unchanged.
        """
        if isinstance(value, Quantity):
            return value.to(cls.unit_Q).m
        return value
