import logging
import math
from dataclasses import dataclass

import pygame
import pygame.freetype

import postfix

logger = logging.getLogger(__name__)

@dataclass
class gridSettings:
    labelXInterval: int = 128 # negative for no label
    labelYInterval: int = 128
    gridDivision: tuple = (128, 2) # (Main frequency, subdivision)
    gridColor: tuple = (255, 255, 255)
    lineColor: tuple = (0, 0, 0)
    lineWeightAxis: int = 4 # line weight for x/y axes
    lineWeightMajor: int = 3 # line weight for major gridlines
    lineWeightMinor: int = 2 # line weight for subdividing gridlines
    labelScale: int = 15
    unitSize: int = 32 # pixels per unit of x and y
    maxSamplesPerAxis: int = 200
    invalidColor: tuple = (128, 128, 128) # cells where z is nan or infinite

@dataclass
class funcSettings:
    lowColor: tuple = (0, 0, 255)
    highColor: tuple = (255, 0, 0)
    alpha: int = 160
    visible: bool = True


def sampleGrid(expression, parser=None, xRange=(-10, 10), yRange=(-10, 10), step=1):
    """Evaluate ``expression`` at every integer (x, y) in the inclusive ranges.

    Returns ``{"x", "y", "z"}`` dicts, x-major. The first failing point aborts
    the whole batch and its error propagates to the caller.
    """
    parser = parser or postfix.defaultParser
    compiled = parser.compile(expression)
    points = []
    for x in range(xRange[0], xRange[1] + 1, step):
        for y in range(yRange[0], yRange[1] + 1, step):
            try:
                z = compiled.evaluate({"x": x, "y": y})
            except postfix.EvaluationError as e:
                logger.error("sampling %r aborted at x=%s y=%s: %s", expression, x, y, e)
                raise
            points.append({"x": x, "y": y, "z": z})
    return points

def latticeRange(start, stop, unit):
    # integer world coordinates whose pixel position lies in [start, stop]
    return range(math.ceil(start / unit), math.floor(stop / unit) + 1)

def blend(low, high, t):
    return tuple(round(a + (b - a) * t) for a, b in zip(low, high))

def colorFor(z, low, high, settings, invalidColor):
    if not math.isfinite(z):
        return invalidColor
    # halved so that a range wider than the largest float stays finite
    span = high / 2 - low / 2
    t = 0.5 if span == 0 else (z / 2 - low / 2) / span
    return blend(settings.lowColor, settings.highColor, min(max(t, 0.0), 1.0))


class function:
    def __init__(self, expression, settings=None, parser=None):
        self.expression = expression
        self.compiled = (parser or postfix.defaultParser).compile(expression)
        self.settings = settings or funcSettings()

    def call(self, x, y):
        return self.compiled.evaluate({"x": x, "y": y})


class grid:
    def __init__(self, settings=None, parser=None):
        self.settings = settings or gridSettings()
        self.parser = parser or postfix.defaultParser
        self.functions = []
        self.fonts = {}

    @staticmethod
    def translateToRegion(point, region):
        point = point[0] - region.left, point[1] - region.top
        return point

    def toPixels(self, x, y):
        unit = self.settings.unitSize
        return x * unit, -y * unit

    def drawGridlinesForAxis(self, region, surface, axis):
        if axis == "x":
            rng = (region.left, region.right)
        elif axis == "y":
            rng = (region.top, region.bottom)
        else:
            raise ValueError(f"axis should be \"x\" or \"y\"; got {axis}")
        frequency, subdivision = self.settings.gridDivision
        minorFrequency = max(frequency // subdivision, 1)
        for grade in range(rng[0] - rng[0] % minorFrequency, rng[1] + 1, minorFrequency):
            if grade == 0:
                lineweight = self.settings.lineWeightAxis
            elif grade % frequency == 0:
                lineweight = self.settings.lineWeightMajor
            else:
                lineweight = self.settings.lineWeightMinor
            if axis == "x":
                newLine = (grade - region.left, 0), (grade - region.left, region.height)
            else:
                newLine = (0, grade - region.top), (region.width, grade - region.top)
            pygame.draw.line(surface, self.settings.lineColor, *newLine, lineweight)

    def drawGridlines(self, region, surface):
        self.drawGridlinesForAxis(region, surface, "x")
        self.drawGridlinesForAxis(region, surface, "y")

    def sampleRegion(self, func, region):
        unit = self.settings.unitSize
        xs = latticeRange(region.left, region.right, unit)
        ys = latticeRange(-region.bottom, -region.top, unit)
        step = max(max(len(xs), len(ys)) // self.settings.maxSamplesPerAxis, 1)
        return [(x, y, func.call(x, y)) for x in xs[::step] for y in ys[::step]], step

    def graphFunctions(self, region, surface):
        for func in self.functions:
            if not func.settings.visible:
                continue
            samples, step = self.sampleRegion(func, region)
            finite = [z for _, _, z in samples if math.isfinite(z)]
            low, high = (min(finite), max(finite)) if finite else (0, 0)
            layer = pygame.Surface(region.size, pygame.SRCALPHA)
            size = self.settings.unitSize * step
            for x, y, z in samples:
                color = colorFor(z, low, high, func.settings, self.settings.invalidColor)
                cell = pygame.Rect(0, 0, size, size)
                cell.center = grid.translateToRegion(self.toPixels(x, y), region)
                layer.fill((*color, func.settings.alpha), cell)
            surface.blit(layer, (0, 0))

    def getLabelFont(self, size):
        if size not in self.fonts:
            if not pygame.freetype.get_init():
                pygame.freetype.init()
            self.fonts[size] = pygame.freetype.Font(None, size)
        return self.fonts[size]

    def labelAxes(self, region, surface):
        renderer = self.getLabelFont(self.settings.labelScale)
        unit = self.settings.unitSize
        # labels hug the axes, or the nearest edge when an axis is off screen
        xAxis = min(max(-region.top, 0), region.height - self.settings.labelScale)
        yAxis = min(max(-region.left, 0), region.width - self.settings.labelScale)
        if self.settings.labelXInterval > 0:
            interval = self.settings.labelXInterval
            for grade in range(region.left - region.left % interval, region.right + 1, interval):
                label, _ = renderer.render(f"{grade / unit:g}", self.settings.lineColor)
                surface.blit(label, (grade - region.left + 2, xAxis + 2))
        if self.settings.labelYInterval > 0:
            interval = self.settings.labelYInterval
            for grade in range(region.top - region.top % interval, region.bottom + 1, interval):
                if grade == 0:
                    continue
                label, _ = renderer.render(f"{-grade / unit:g}", self.settings.lineColor)
                surface.blit(label, (yAxis + 2, grade - region.top + 2))

    def render(self, region):
        region = pygame.Rect(region)

        surface = pygame.Surface((region.size))
        surface.fill(self.settings.gridColor)
        self.graphFunctions(region, surface)
        self.drawGridlines(region, surface)
        self.labelAxes(region, surface)
        return surface

    def addFunc(self, func):
        self.functions.append(func)

    def addFuncFromString(self, string, lowColor=None, highColor=None, alpha=None):
        # reject expressions that fail anywhere on the default sampling grid
        sampleGrid(string, self.parser)
        f = function(string, parser=self.parser)
        f.settings.lowColor = lowColor or f.settings.lowColor
        f.settings.highColor = highColor or f.settings.highColor
        f.settings.alpha = alpha if alpha is not None else f.settings.alpha
        self.addFunc(f)
        return f

    def replaceFuncFromString(self, string, **kwargs):
        previous = self.functions
        self.functions = []
        try:
            return self.addFuncFromString(string, **kwargs)
        except postfix.EvaluationError:
            self.functions = previous
            raise
