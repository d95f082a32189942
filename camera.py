import argparse
import logging
import math
import threading

import pygame

import grid
import postfix

logger = logging.getLogger(__name__)

ZOOM_STEP = 1.25
SCREEN_PIXELS_PER_SAMPLE = 4

def niceStep(span, lines=10):
    """Smallest 1, 2 or 5 times a power of ten giving at most ``lines`` gridlines over ``span``."""
    raw = span / lines
    magnitude = 10 ** math.floor(math.log10(raw))
    for mantissa in (1, 2, 5, 10):
        if mantissa * magnitude >= raw:
            return mantissa * magnitude

def settingsForView(span, pixelsPerUnit):
    unit = max(round(pixelsPerUnit), 1)
    # render pixels per screen pixel once the surface is scaled to the window
    scale = unit / pixelsPerUnit
    major = max(round(niceStep(span) * unit), 1)
    return {
        "unitSize": unit,
        "gridDivision": (major, 2 if major % 2 == 0 else 1),
        "lineWeightAxis": max(round(3 * scale), 1),
        "lineWeightMajor": max(round(2 * scale), 1),
        "lineWeightMinor": 1,
        "labelXInterval": major,
        "labelYInterval": major,
        "labelScale": max(round(15 * scale), 8),
        "maxSamplesPerAxis": max(round(span * pixelsPerUnit / SCREEN_PIXELS_PER_SAMPLE), 1),
        }

class Camera:
    """Viewport over a renderable, kept in world units.

    ``span`` is the number of world units across the shorter side of the
    screen; the renderable's ``settings.unitSize`` turns world units into the
    pixels it renders.
    """
    def __init__(self, center, span, spanMin, spanMax, renderable, screen):
        self.renderable = renderable
        self.center = tuple(center)
        self.spanMin = spanMin
        self.spanMax = spanMax
        self.span = self.clampSpan(span)
        self.panning = False
        self.panStart = (0, 0)
        self.panCurrent = (0, 0)
        self.screen = screen
    def clampSpan(self, span):
        return min(max(span, self.spanMin), self.spanMax)
    def screenSize(self):
        return self.screen.get_rect().size
    def pixelsPerUnit(self):
        return min(self.screenSize()) / self.span
    def screenToWorld(self, pos):
        width, height = self.screenSize()
        ppu = self.pixelsPerUnit()
        return self.center[0] + (pos[0] - width / 2) / ppu, self.center[1] - (pos[1] - height / 2) / ppu
    def getPanDifference(self):
        ppu = self.pixelsPerUnit()
        return (self.panStart[0] - self.panCurrent[0]) / ppu, (self.panCurrent[1] - self.panStart[1]) / ppu
    def getCenter(self):
        if not self.panning:
            return self.center
        dx, dy = self.getPanDifference()
        return self.center[0] + dx, self.center[1] + dy
    def lockPan(self):
        self.center = self.getCenter()
        self.panning = False
    def getWorldRect(self):
        """(left, bottom, width, height) of the visible area in world units."""
        width, height = self.screenSize()
        ppu = self.pixelsPerUnit()
        cx, cy = self.getCenter()
        w, h = width / ppu, height / ppu
        return cx - w / 2, cy - h / 2, w, h
    def getViewport(self):
        unit = self.renderable.settings.unitSize
        left, bottom, w, h = self.getWorldRect()
        # render pixels grow downwards, world y grows upwards
        return pygame.Rect(round(left * unit), round(-(bottom + h) * unit), round(w * unit), round(h * unit))
    def getScale(self):
        return self.renderable.settings.unitSize / self.pixelsPerUnit()
    def zoomAt(self, factor, pos):
        """Multiply the span by ``factor`` keeping the world point under ``pos`` fixed."""
        anchor = self.screenToWorld(pos)
        self.span = self.clampSpan(self.span * factor)
        width, height = self.screenSize()
        ppu = self.pixelsPerUnit()
        self.center = anchor[0] - (pos[0] - width / 2) / ppu, anchor[1] + (pos[1] - height / 2) / ppu
    def render(self):
        return self.renderable.render(self.getViewport())

class UI:
    def __init__(self, camera):
        self.camera = camera

    def dispatchEvents(self, events):
        running = True
        for event in events:
            if event.type == pygame.MOUSEBUTTONDOWN:
                if event.button == 1:
                    self.camera.panning = True
                    self.camera.panStart = event.pos
                    self.camera.panCurrent = event.pos
                elif event.button == 4:
                    self.camera.zoomAt(1 / ZOOM_STEP, event.pos)
                elif event.button == 5:
                    self.camera.zoomAt(ZOOM_STEP, event.pos)
            elif event.type == pygame.MOUSEMOTION:
                self.camera.panCurrent = event.pos
            elif event.type == pygame.MOUSEBUTTONUP:
                if event.button == 1:
                    self.camera.panCurrent = event.pos
                    self.camera.lockPan()
            elif event.type == pygame.QUIT:
                running = False
                break
        return running

    def setGridByZoom(self):
        settings = self.camera.renderable.settings
        for itemName, value in settingsForView(self.camera.span, self.camera.pixelsPerUnit()).items():
            setattr(settings, itemName, value)

def submitExpression(g, text):
    """Swap the plotted function for ``text``; returns False and keeps the old plot on failure."""
    try:
        g.replaceFuncFromString(text)
    except postfix.EvaluationError as e:
        logger.warning("Invalid expression: %s", e)
        return False
    logger.info("plotting %s", text)
    return True

def parseArgs(argv=None):
    parser = argparse.ArgumentParser(description="Plot z = f(x, y) as a heat map.")
    parser.add_argument("expression", nargs="*", help="formula in x and y, e.g. 'sin(x)y'")
    parser.add_argument("--strict", action="store_true", help="reject unknown characters and unbalanced parentheses")
    parser.add_argument("--size", type=int, nargs=2, default=(800, 800), metavar=("WIDTH", "HEIGHT"))
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)

def main(argv=None):
    args = parseArgs(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    size = tuple(args.size)
    pygame.init()
    pygame.font.init()
    screen = pygame.display.set_mode(size)

    g = grid.grid(parser=postfix.MathParser(strict=args.strict))
    c = Camera((0, 0), 20, 0.5, 2000, g, screen)
    u = UI(c)
    u.setGridByZoom()
    submitExpression(g, " ".join(args.expression) or "x^2 - y^2")
    inputBuffer = {"text": None}
    def getInput():
        while True:
            try:
                inputBuffer["text"] = input("input a new equation: ")
            except EOFError:
                return
    threading.Thread(target=getInput, daemon=True).start()
    running = True
    while running:
        if inputBuffer["text"] is not None:
            submitExpression(g, inputBuffer["text"])
            inputBuffer["text"] = None
        surface = c.render()
        surface = pygame.transform.scale(surface, screen.get_rect().size)
        screen.blit(surface, (0, 0))
        pygame.display.flip()
        running = u.dispatchEvents(pygame.event.get())
        u.setGridByZoom()
    pygame.quit()

if __name__ == '__main__':
    main()
